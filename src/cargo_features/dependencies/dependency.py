"""Dependency model: identity plus the feature graph of one manifest entry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable, Sequence

from cargo_features.core.constants import DEFAULT_FEATURE
from cargo_features.dependencies.feature_graph import FeatureGraph

logger = logging.getLogger(__name__)


class DependencyKind(StrEnum):
    """Manifest section a dependency was declared in."""

    NORMAL = "normal"
    DEVELOPMENT = "development"
    BUILD = "build"
    WORKSPACE = "workspace"
    UNKNOWN = "unknown"

    @classmethod
    def from_section(cls, section: str) -> "DependencyKind":
        return _SECTION_KINDS.get(section, cls.UNKNOWN)

    @property
    def label(self) -> str:
        """Short tag shown next to the dependency name ("" for plain entries)."""
        return _KIND_LABELS[self]


_SECTION_KINDS = {
    "dependencies": DependencyKind.NORMAL,
    "dev-dependencies": DependencyKind.DEVELOPMENT,
    "dev_dependencies": DependencyKind.DEVELOPMENT,
    "build-dependencies": DependencyKind.BUILD,
    "build_dependencies": DependencyKind.BUILD,
}

_KIND_LABELS = {
    DependencyKind.NORMAL: "",
    DependencyKind.WORKSPACE: "",
    DependencyKind.DEVELOPMENT: "dev",
    DependencyKind.BUILD: "build",
    DependencyKind.UNKNOWN: "unknown",
}


@dataclass
class Dependency:
    """A manifest dependency and its current feature selection."""

    name: str
    version: str
    kind: DependencyKind
    graph: FeatureGraph
    default_features_requested: bool = True
    version_req: str | None = None
    package: str | None = None
    table: tuple[str, ...] = ("dependencies",)
    inherited: bool = False
    extra_features: list[str] = field(default_factory=list)

    @classmethod
    def from_registry_data(
        cls,
        name: str,
        version: str,
        implies_map: dict[str, Sequence[str]],
        default_features: Sequence[str],
        optional_dependencies: Sequence[str],
        requested_features: Iterable[str] = (),
        default_features_requested: bool = True,
        kind: DependencyKind = DependencyKind.NORMAL,
        **kwargs,
    ) -> "Dependency":
        """Build a dependency and apply the requested feature selection.

        ``"default"`` in the requested list is read as asking for the default
        profile. Requested names the registry doesn't know are kept verbatim
        in ``extra_features`` so they survive a rewrite of the entry.
        """
        requested = list(requested_features)
        if DEFAULT_FEATURE in requested:
            default_features_requested = True
            requested = [feature for feature in requested if feature != DEFAULT_FEATURE]

        graph = FeatureGraph(
            implies_map,
            default_features=default_features,
            optional_dependencies=optional_dependencies,
            requested=requested,
            use_default=default_features_requested,
            owner=name,
        )

        extra = [feature for feature in requested if feature not in graph]
        if extra:
            logger.warning("%s requests unknown feature(s): %s", name, ", ".join(extra))

        return cls(
            name=name,
            version=version,
            kind=kind,
            graph=graph,
            default_features_requested=default_features_requested,
            extra_features=extra,
            **kwargs,
        )

    @property
    def display_version(self) -> str:
        return self.version or self.version_req or ""

    def has_features(self) -> bool:
        return len(self.graph) > 0

    def toggle_feature(self, name: str) -> None:
        self.graph.toggle(name)

    def enable_feature(self, name: str) -> None:
        self.graph.enable(name)

    def disable_feature(self, name: str) -> None:
        self.graph.disable(name)

    def uses_default_profile(self) -> bool:
        return self.graph.uses_default_profile()

    def enabled_non_default(self) -> list[str]:
        return self.graph.enabled_non_default()


__all__ = ["Dependency", "DependencyKind"]
