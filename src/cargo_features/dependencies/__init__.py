"""Dependency and feature-graph models."""

from cargo_features.dependencies.dependency import Dependency, DependencyKind
from cargo_features.dependencies.feature_graph import (
    Feature,
    FeatureGraph,
    FeatureOrigin,
    FeatureSnapshot,
    is_cross_package,
)
from cargo_features.dependencies.search import SearchMatch, filter_names, fuzzy_match

__all__ = [
    "Dependency",
    "DependencyKind",
    "Feature",
    "FeatureGraph",
    "FeatureOrigin",
    "FeatureSnapshot",
    "SearchMatch",
    "filter_names",
    "fuzzy_match",
    "is_cross_package",
]
