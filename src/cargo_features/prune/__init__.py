"""Automated feature pruning."""

from cargo_features.prune.ignore import IgnoreList, load_ignore_list
from cargo_features.prune.oracle import BuildOracle, CommandOracle
from cargo_features.prune.pruner import (
    DependencyFinished,
    DependencyOutcome,
    DependencyStarted,
    PackageStarted,
    PruneEvent,
    PruneReport,
    Pruner,
    TrialFinished,
    TrialStarted,
)

__all__ = [
    "BuildOracle",
    "CommandOracle",
    "DependencyFinished",
    "DependencyOutcome",
    "DependencyStarted",
    "IgnoreList",
    "PackageStarted",
    "PruneEvent",
    "PruneReport",
    "Pruner",
    "TrialFinished",
    "TrialStarted",
    "load_ignore_list",
]
