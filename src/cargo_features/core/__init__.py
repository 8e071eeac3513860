"""Shared building blocks for cargo-features."""

from cargo_features.core.errors import (
    CargoFeaturesError,
    ConfigError,
    IgnoreListMalformed,
    ManifestError,
    NoDependenciesFound,
    OracleUnavailable,
    RegistryError,
    StaleSelection,
    UnknownFeature,
)

__all__ = [
    "CargoFeaturesError",
    "ConfigError",
    "IgnoreListMalformed",
    "ManifestError",
    "NoDependenciesFound",
    "OracleUnavailable",
    "RegistryError",
    "StaleSelection",
    "UnknownFeature",
]
