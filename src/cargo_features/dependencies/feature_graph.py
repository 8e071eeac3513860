"""Feature graph of a single dependency.

A dependency's features form a directed graph: an implication edge ``a -> b``
means that enabling ``a`` requires ``b`` to be enabled as well. The graph keeps
that precondition closed under every mutation:

* ``enable`` turns on a feature and everything it implies,
* ``disable`` turns off a feature and everything that depends on it, then
  releases implied features nothing enabled needs any more.

Both walks stop at nodes already in the target state, which is also what
terminates them on cyclic graphs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable, Iterator, Mapping, Sequence

from cargo_features.core.constants import DEFAULT_FEATURE
from cargo_features.core.errors import UnknownFeature


class FeatureOrigin(StrEnum):
    """Where a feature node comes from."""

    DECLARED = "declared"
    OPTIONAL_DEPENDENCY = "optional_dependency"


@dataclass
class Feature:
    """A single feature node."""

    name: str
    is_default: bool = False
    implies: list[str] = field(default_factory=list)
    raw_implies: list[str] = field(default_factory=list)
    origin: FeatureOrigin = FeatureOrigin.DECLARED
    enabled: bool = False
    pinned: bool = False  # enabled directly, not only through an implication

    @property
    def opaque_implies(self) -> list[str]:
        """Cross-package entries such as ``serde/std`` or ``dep:foo``."""
        return [entry for entry in self.raw_implies if is_cross_package(entry)]


FeatureSnapshot = tuple[tuple[str, bool, bool], ...]


def is_cross_package(entry: str) -> bool:
    """Return True for implication entries that refer to another package."""
    return ":" in entry or "/" in entry


def _local(entries: Iterable[str]) -> list[str]:
    result: list[str] = []
    for entry in entries:
        if not is_cross_package(entry) and entry not in result:
            result.append(entry)
    return result


class FeatureGraph:
    """Feature nodes of one dependency with their implication edges."""

    def __init__(
        self,
        implies_map: Mapping[str, Sequence[str]],
        default_features: Sequence[str] = (),
        optional_dependencies: Sequence[str] = (),
        requested: Iterable[str] = (),
        use_default: bool = True,
        owner: str | None = None,
    ):
        self.owner = owner
        self._default_features = _local(name for name in default_features if name != DEFAULT_FEATURE)
        default_set = set(self._default_features)

        raw = {
            name: list(entries)
            for name, entries in implies_map.items()
            if name != DEFAULT_FEATURE
        }

        # Cargo drops the implicit feature of an optional dependency that is
        # referenced with the ``dep:`` prefix anywhere.
        explicit_deps = {
            entry[len("dep:"):]
            for entries in [*raw.values(), list(default_features)]
            for entry in entries
            if entry.startswith("dep:")
        }

        optional = set(optional_dependencies)
        nodes: dict[str, Feature] = {}
        for name, entries in raw.items():
            nodes[name] = Feature(name=name, implies=_local(entries), raw_implies=entries)
            for implied in nodes[name].implies:
                if implied not in nodes:
                    origin = FeatureOrigin.OPTIONAL_DEPENDENCY if implied in optional else FeatureOrigin.DECLARED
                    nodes[implied] = Feature(name=implied, origin=origin)
        for name in self._default_features:
            nodes.setdefault(name, Feature(name=name))
        for name in optional_dependencies:
            if name in explicit_deps or name in nodes:
                continue
            nodes[name] = Feature(name=name, origin=FeatureOrigin.OPTIONAL_DEPENDENCY)

        for feature in nodes.values():
            feature.is_default = feature.name in default_set

        self._order = sorted(nodes, key=lambda name: (name not in default_set, name))
        self._features = {name: nodes[name] for name in self._order}

        self._dependents: dict[str, list[str]] = {name: [] for name in self._order}
        for name in self._order:
            for implied in self._features[name].implies:
                if name not in self._dependents[implied]:
                    self._dependents[implied].append(name)

        requested_set = set(requested)
        roots = [
            name for name in self._order if name in requested_set or (use_default and name in default_set)
        ]

        # A requested feature that another root already implies is treated as
        # implied, which is how a persisted selection reads back in.
        covered: set[str] = set()
        for name in roots:
            covered.update(self._closure(name) - {name})
        for name in roots:
            pin = name not in covered or (use_default and name in default_set)
            self._enable(name, pin=pin)

    # ------------------------------------------------------------------
    # mutation

    def enable(self, name: str) -> None:
        """Enable ``name`` and its whole implication closure."""
        self._enable(name, pin=True)

    def disable(self, name: str) -> None:
        """Disable ``name`` and every feature that transitively depends on it."""
        disabled: list[Feature] = []
        self._disable(name, disabled)
        self._release(disabled)

    def toggle(self, name: str) -> None:
        if self._require(name).enabled:
            self.disable(name)
        else:
            self.enable(name)

    def _enable(self, name: str, pin: bool) -> None:
        feature = self._require(name)
        if pin:
            feature.pinned = True
        if feature.enabled:
            return

        feature.enabled = True
        for implied in feature.implies:
            self._enable(implied, pin=False)

    def _disable(self, name: str, disabled: list[Feature]) -> None:
        feature = self._require(name)
        if not feature.enabled:
            return

        feature.enabled = False
        feature.pinned = False
        disabled.append(feature)
        for dependent in self._dependents[name]:
            self._disable(dependent, disabled)

    def _closure(self, name: str) -> set[str]:
        """Features reachable from ``name`` through implication edges."""
        seen = {name}
        pending = list(self._features[name].implies)
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            pending.extend(self._features[current].implies)
        return seen

    def _release(self, disabled: list[Feature]) -> None:
        pending = [implied for feature in disabled for implied in feature.implies]
        while pending:
            feature = self._features[pending.pop(0)]
            if not feature.enabled or feature.pinned:
                continue
            if self.active_dependents(feature.name):
                continue
            feature.enabled = False
            pending.extend(feature.implies)

    # ------------------------------------------------------------------
    # snapshots

    def snapshot(self) -> FeatureSnapshot:
        """Capture the enabled state as an ordered tuple of ``(name, enabled, pinned)``."""
        return tuple((name, feature.enabled, feature.pinned) for name, feature in self._features.items())

    def restore(self, snapshot: FeatureSnapshot) -> None:
        """Apply a state captured by :meth:`snapshot`."""
        for name, enabled, pinned in snapshot:
            feature = self._require(name)
            feature.enabled = enabled
            feature.pinned = pinned

    # ------------------------------------------------------------------
    # queries

    def get(self, name: str) -> Feature:
        return self._require(name)

    def features(self) -> list[Feature]:
        """All features in display order (defaults first, then alphabetical)."""
        return list(self._features.values())

    def names(self) -> list[str]:
        return list(self._order)

    @property
    def default_features(self) -> list[str]:
        return list(self._default_features)

    def is_default(self, name: str) -> bool:
        return self._require(name).is_default

    def dependents(self, name: str) -> list[str]:
        """Features that directly imply ``name``."""
        self._require(name)
        return list(self._dependents[name])

    def active_dependents(self, name: str) -> list[str]:
        """Enabled features that directly imply ``name``.

        A feature with active dependents cannot be turned off on its own; the
        editor renders it as locked.
        """
        return [dependent for dependent in self.dependents(name) if self._features[dependent].enabled]

    def enabled_features(self) -> list[str]:
        return [name for name, feature in self._features.items() if feature.enabled]

    def uses_default_profile(self) -> bool:
        """True when every default feature is enabled; extra features don't matter."""
        return all(self._features[name].enabled for name in self._default_features)

    def enabled_non_default(self) -> list[str]:
        """Enabled features, minus the defaults when the default profile is in use."""
        enabled = self.enabled_features()
        if not self.uses_default_profile():
            return enabled
        default_set = set(self._default_features)
        return [name for name in enabled if name not in default_set]

    def _require(self, name: str) -> Feature:
        try:
            return self._features[name]
        except KeyError:
            raise UnknownFeature(name, self.owner) from None

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features.values())

    def __len__(self) -> int:
        return len(self._features)

    def __repr__(self) -> str:
        return f"FeatureGraph(owner={self.owner!r}, enabled={self.enabled_features()!r})"


__all__ = [
    "Feature",
    "FeatureGraph",
    "FeatureOrigin",
    "FeatureSnapshot",
    "is_cross_package",
]
