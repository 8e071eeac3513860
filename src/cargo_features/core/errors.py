"""Exception hierarchy for cargo-features.

Every error the CLI reports to the user derives from ``CargoFeaturesError``.
Load-time errors (manifest, registry, ignore list, config) are raised before
any manifest mutation happens.
"""

from __future__ import annotations


class CargoFeaturesError(Exception):
    """Base exception for cargo-features errors."""
    pass


class UnknownFeature(CargoFeaturesError):
    """A feature name is not a node of the dependency's feature graph."""

    def __init__(self, feature: str, dependency: str | None = None):
        self.feature = feature
        self.dependency = dependency
        if dependency:
            super().__init__(f"feature named {feature} not found in {dependency}")
        else:
            super().__init__(f"feature named {feature} not found")


class NoDependenciesFound(CargoFeaturesError):
    """The manifest declares no dependencies at all."""

    def __init__(self, manifest_path: object):
        self.manifest_path = manifest_path
        super().__init__(f"no dependencies were found in {manifest_path}")


class OracleUnavailable(CargoFeaturesError):
    """The build-validation command could not produce an exit status."""
    pass


class IgnoreListMalformed(CargoFeaturesError):
    """The ignore list file exists but does not have the expected structure."""
    pass


class StaleSelection(CargoFeaturesError):
    """An index addressed a list that has changed since it was fetched."""

    def __init__(self, index: int, size: int, what: str = "item"):
        self.index = index
        self.size = size
        super().__init__(f"{what} #{index} is out of range ({size} available); refresh and retry")


class ManifestError(CargoFeaturesError):
    """The manifest is missing or cannot be parsed."""
    pass


class RegistryError(CargoFeaturesError):
    """Registry metadata for a dependency could not be resolved."""
    pass


class ConfigError(CargoFeaturesError):
    """The configuration file or environment overrides are invalid."""
    pass


__all__ = [
    "CargoFeaturesError",
    "UnknownFeature",
    "NoDependenciesFound",
    "OracleUnavailable",
    "IgnoreListMalformed",
    "StaleSelection",
    "ManifestError",
    "RegistryError",
    "ConfigError",
]
