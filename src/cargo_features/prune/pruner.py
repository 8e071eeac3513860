"""Automated feature pruning driven by a build oracle.

For every dependency the pruner tries to switch off each enabled feature on
its own, starting from the same baseline each time:

1. disable the candidate (which may cascade to its dependents) and persist,
2. ask the oracle whether the project still builds,
3. restore the baseline in memory and on disk, whatever the answer.

Candidates whose trial passed are then disabled together and persisted once.
That combined state is not re-validated: two features that can each be
removed alone may still be needed together, in which case the result no
longer builds.

Trials run strictly one after another; each one mutates the shared manifest
and relies on the restore before the next begins. Cancellation is honoured
only after a restore, when the manifest matches the baseline again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Union

from cargo_features.dependencies.dependency import Dependency
from cargo_features.manifest.document import Document
from cargo_features.prune.ignore import IgnoreList
from cargo_features.prune.oracle import BuildOracle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageStarted:
    package: str
    index: int
    total: int


@dataclass(frozen=True)
class DependencyStarted:
    package: str
    dependency: str
    candidates: tuple[str, ...]


@dataclass(frozen=True)
class TrialStarted:
    package: str
    dependency: str
    feature: str
    index: int
    total: int


@dataclass(frozen=True)
class TrialFinished:
    package: str
    dependency: str
    feature: str
    index: int
    total: int
    removable: bool
    blocked_by: tuple[str, ...] = ()  # protected features the removal would have disabled


@dataclass
class DependencyOutcome:
    """What pruning found (and did) for one dependency."""

    package: str
    dependency: str
    candidates: list[str] = field(default_factory=list)
    accepted: list[str] = field(default_factory=list)
    applied: bool = False


@dataclass(frozen=True)
class DependencyFinished:
    outcome: DependencyOutcome


PruneEvent = Union[PackageStarted, DependencyStarted, TrialStarted, TrialFinished, DependencyFinished]


@dataclass
class PruneReport:
    dry_run: bool = False
    cancelled: bool = False
    outcomes: list[DependencyOutcome] = field(default_factory=list)

    @property
    def removable_count(self) -> int:
        return sum(len(outcome.accepted) for outcome in self.outcomes)

    def to_dict(self) -> dict[str, object]:
        return {
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "dependencies": [
                {
                    "package": outcome.package,
                    "dependency": outcome.dependency,
                    "candidates": list(outcome.candidates),
                    "removable": list(outcome.accepted),
                    "applied": outcome.applied,
                }
                for outcome in self.outcomes
            ],
        }


class Pruner:
    """Shrink each dependency's enabled features while the oracle passes."""

    def __init__(
        self,
        document: Document,
        oracle: BuildOracle,
        ignore_list: IgnoreList | None = None,
        dry_run: bool = False,
        on_event: Callable[[PruneEvent], None] | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ):
        self.document = document
        self.oracle = oracle
        self.ignore_list = ignore_list or IgnoreList()
        self.dry_run = dry_run
        self._on_event = on_event
        self._should_cancel = should_cancel
        self._cancelled = False

    def _emit(self, event: PruneEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _cancel_requested(self) -> bool:
        if self._should_cancel is not None and self._should_cancel():
            self._cancelled = True
        return self._cancelled

    def run(self) -> PruneReport:
        report = PruneReport(dry_run=self.dry_run)
        total = len(self.document.packages)

        for package_index, package in enumerate(self.document.packages):
            self._emit(PackageStarted(package=package.name, index=package_index, total=total))
            for dependency in list(package.dependencies):
                outcome = self.prune_dependency(package_index, dependency)
                if outcome is not None:
                    report.outcomes.append(outcome)
                if self._cancelled:
                    logger.info("pruning cancelled after %s", dependency.name)
                    report.cancelled = True
                    return report

        return report

    def candidates(self, dependency: Dependency) -> list[str]:
        """Enabled features of ``dependency`` that aren't protected, in display order."""
        protected = set(self.ignore_list.protected(dependency.name))
        return [name for name in dependency.graph.enabled_features() if name not in protected]

    def prune_dependency(self, package_index: int, dependency: Dependency) -> DependencyOutcome | None:
        """Run every trial for one dependency; None when there is nothing to try."""
        package = self.document.get_package(package_index)
        graph = dependency.graph
        candidates = self.candidates(dependency)
        if not candidates:
            return None

        outcome = DependencyOutcome(package=package.name, dependency=dependency.name, candidates=candidates)
        self._emit(DependencyStarted(package=package.name, dependency=dependency.name, candidates=tuple(candidates)))

        baseline_enabled = set(graph.enabled_features())
        protected = [name for name in self.ignore_list.protected(dependency.name) if name in baseline_enabled]
        # Pinned so that disabling the accepted set together can't release them.
        for name in protected:
            graph.enable(name)
        baseline = graph.snapshot()
        manifest_baseline = self.document.capture(package_index)
        total = len(candidates)

        for index, feature in enumerate(candidates, start=1):
            self._emit(TrialStarted(package.name, dependency.name, feature, index, total))

            graph.disable(feature)
            blocked_by = tuple(name for name in protected if not graph.get(name).enabled)
            removable = False

            if blocked_by:
                logger.debug("%s/%s would disable protected %s", dependency.name, feature, ", ".join(blocked_by))
                graph.restore(baseline)
            else:
                self.document.persist(package_index, dependency)
                try:
                    removable = self.oracle.check()
                finally:
                    graph.restore(baseline)
                    self.document.restore(manifest_baseline)

            if removable:
                outcome.accepted.append(feature)
            self._emit(TrialFinished(package.name, dependency.name, feature, index, total, removable, blocked_by))

            if self._cancel_requested():
                self._emit(DependencyFinished(outcome))
                return outcome

        if outcome.accepted and not self.dry_run:
            for feature in outcome.accepted:
                graph.disable(feature)
            self.document.persist(package_index, dependency)
            outcome.applied = True
            logger.info("%s: removed %s", dependency.name, ", ".join(outcome.accepted))

        self._emit(DependencyFinished(outcome))
        return outcome


__all__ = [
    "DependencyFinished",
    "DependencyOutcome",
    "DependencyStarted",
    "PackageStarted",
    "PruneEvent",
    "PruneReport",
    "Pruner",
    "TrialFinished",
    "TrialStarted",
]
