"""Cargo manifest access: loading, persistence and registry metadata."""

from cargo_features.manifest.document import (
    Document,
    ManifestFile,
    ManifestSnapshot,
    Package,
    locate_manifest,
)
from cargo_features.manifest.registry import (
    CargoMetadataRegistry,
    Registry,
    RegistryEntry,
    SparseIndexRegistry,
)

__all__ = [
    "CargoMetadataRegistry",
    "Document",
    "ManifestFile",
    "ManifestSnapshot",
    "Package",
    "Registry",
    "RegistryEntry",
    "SparseIndexRegistry",
    "locate_manifest",
]
