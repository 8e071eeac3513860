"""Cargo manifest loading and persistence.

``Document`` reads a root ``Cargo.toml`` (and, for workspaces, every member
manifest) into ``Package`` objects holding ``Dependency`` models, and writes a
single dependency's feature selection back into the manifest it came from.

Manifests are edited with tomlkit so comments, ordering and formatting of the
rest of the file survive every write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import Table

from cargo_features.core.constants import MANIFEST_FILE, WORKSPACE_PACKAGE
from cargo_features.core.errors import ManifestError, NoDependenciesFound, StaleSelection
from cargo_features.dependencies.dependency import Dependency, DependencyKind
from cargo_features.dependencies.search import SearchMatch, filter_names
from cargo_features.manifest.registry import Registry

logger = logging.getLogger(__name__)

DEPENDENCY_SECTIONS = (
    "dependencies",
    "dev-dependencies",
    "build-dependencies",
    "dev_dependencies",
    "build_dependencies",
)

_MANAGED_KEYS = {"version", "features", "default-features", "default_features", "workspace"}


def locate_manifest(start: Path) -> Path | None:
    """Return the nearest ``Cargo.toml`` at or above ``start``."""
    current = start.resolve()
    for candidate in (current, *current.parents):
        manifest = candidate / MANIFEST_FILE
        if manifest.is_file():
            return manifest
    return None


class ManifestFile:
    """One ``Cargo.toml`` on disk and its parsed tomlkit document."""

    def __init__(self, path: Path, document: tomlkit.TOMLDocument):
        self.path = path
        self.document = document

    @classmethod
    def read(cls, path: Path) -> "ManifestFile":
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ManifestError(f"{path} does not exist") from exc
        try:
            return cls(path, tomlkit.parse(text))
        except TOMLKitError as exc:
            raise ManifestError(f"Failed to parse {path}: {exc}") from exc

    def dumps(self) -> str:
        return tomlkit.dumps(self.document)

    def save(self) -> None:
        self.path.write_text(self.dumps(), encoding="utf-8")

    def replace(self, text: str) -> None:
        """Write ``text`` verbatim and reload the in-memory document from it."""
        self.document = tomlkit.parse(text)
        self.path.write_text(text, encoding="utf-8")


@dataclass(frozen=True)
class ManifestSnapshot:
    """Exact text of a manifest at a known-good point."""

    manifest: ManifestFile
    text: str


@dataclass
class Package:
    """A package (or the workspace dependency table) and its dependencies."""

    name: str
    manifest: ManifestFile
    dependencies: list[Dependency] = field(default_factory=list)

    def get_dependency(self, name: str) -> Dependency:
        for dependency in self.dependencies:
            if dependency.name == name:
                return dependency
        raise ManifestError(f"dependency {name} not found in {self.name}")

    def dependency_index(self, name: str) -> int:
        for index, dependency in enumerate(self.dependencies):
            if dependency.name == name:
                return index
        raise ManifestError(f"dependency {name} not found in {self.name}")


def _get(value: Any, key: str, default: Any = None) -> Any:
    return value.get(key, default) if hasattr(value, "get") else default


def _plain(value: Any) -> Any:
    return value.unwrap() if hasattr(value, "unwrap") else value


def _dependency_tables(container: Any, prefix: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], str, Any]]:
    """Yield ``(table path, section, table)`` for every dependency table of a package."""
    for section in DEPENDENCY_SECTIONS:
        table = _get(container, section)
        if table is not None:
            yield (*prefix, section), section, table

    targets = _get(container, "target")
    if targets is None:
        return
    for cfg, target in targets.items():
        for section in DEPENDENCY_SECTIONS:
            table = _get(target, section)
            if table is not None:
                yield (*prefix, "target", cfg, section), section, table


class Document:
    """All packages of a Cargo project and their dependency feature state."""

    def __init__(self, root: Path, packages: list[Package], is_workspace: bool = False):
        self.root = root
        self.packages = packages
        self.is_workspace = is_workspace

    # ------------------------------------------------------------------
    # loading

    @classmethod
    def load(cls, manifest_path: Path, registry: Registry) -> "Document":
        """Read the manifest at ``manifest_path`` and resolve every dependency."""
        manifest_path = Path(manifest_path)
        root_manifest = ManifestFile.read(manifest_path)
        document = root_manifest.document

        workspace = _get(document, "workspace")
        workspace_deps = _plain(_get(workspace, "dependencies")) or {}
        packages: list[Package] = []

        if _get(document, "package") is not None or workspace is None:
            packages.append(
                cls._load_package(root_manifest, manifest_path.parent.name, registry, workspace_deps)
            )

        if workspace is not None:
            for member_path in cls._member_manifests(manifest_path.parent, workspace):
                member = ManifestFile.read(member_path)
                packages.append(cls._load_package(member, member_path.parent.name, registry, workspace_deps))

            if _get(workspace, "dependencies") is not None:
                packages.append(
                    Package(
                        name=WORKSPACE_PACKAGE,
                        manifest=root_manifest,
                        dependencies=cls._read_table(
                            _get(workspace, "dependencies"),
                            ("workspace", "dependencies"),
                            DependencyKind.WORKSPACE,
                            registry,
                            workspace_deps,
                        ),
                    )
                )

        if not any(package.dependencies for package in packages):
            raise NoDependenciesFound(manifest_path)

        return cls(manifest_path.parent, packages, is_workspace=workspace is not None)

    @staticmethod
    def _member_manifests(root: Path, workspace: Any) -> list[Path]:
        excluded = {(root / pattern).resolve() for pattern in _plain(_get(workspace, "exclude")) or []}
        manifests: list[Path] = []
        for pattern in _plain(_get(workspace, "members")) or []:
            matches = sorted(root.glob(pattern)) if any(char in pattern for char in "*?[") else [root / pattern]
            for member_dir in matches:
                if member_dir.resolve() in excluded or member_dir.resolve() == root.resolve():
                    continue
                manifest = member_dir / MANIFEST_FILE
                if not manifest.is_file():
                    logger.warning("workspace member %s has no %s, skipping", member_dir, MANIFEST_FILE)
                    continue
                if manifest not in manifests:
                    manifests.append(manifest)
        return manifests

    @classmethod
    def _load_package(
        cls,
        manifest: ManifestFile,
        fallback_name: str,
        registry: Registry,
        workspace_deps: dict[str, Any],
    ) -> Package:
        package_table = _get(manifest.document, "package")
        name = str(_get(package_table, "name", fallback_name))

        dependencies: list[Dependency] = []
        for table_path, section, table in _dependency_tables(manifest.document):
            dependencies.extend(
                cls._read_table(table, table_path, DependencyKind.from_section(section), registry, workspace_deps)
            )
        return Package(name=name, manifest=manifest, dependencies=dependencies)

    @staticmethod
    def _read_table(
        table: Any,
        table_path: tuple[str, ...],
        kind: DependencyKind,
        registry: Registry,
        workspace_deps: dict[str, Any],
    ) -> list[Dependency]:
        dependencies = []
        for name, raw_value in table.items():
            value = _plain(raw_value)
            inherited = False

            if isinstance(value, str):
                version_req, features, use_default, package = value, [], True, None
            elif isinstance(value, dict):
                inherited = value.get("workspace") is True
                version_req = value.get("version")
                features = list(value.get("features", []))
                use_default = bool(value.get("default-features", value.get("default_features", True)))
                package = value.get("package")

                if inherited:
                    root_value = workspace_deps.get(name)
                    if root_value is None:
                        raise ManifestError(f"{name} inherits from the workspace but workspace.dependencies has no entry")
                    if isinstance(root_value, str):
                        version_req = root_value
                    else:
                        version_req = root_value.get("version")
                        package = root_value.get("package")
                        features = list(root_value.get("features", [])) + features
                        use_default = bool(root_value.get("default-features", root_value.get("default_features", True)))
            else:
                raise ManifestError(f"invalid dependency entry for {name} in [{'.'.join(table_path)}]")

            entry = registry.resolve(package or name, version_req)
            dependencies.append(
                Dependency.from_registry_data(
                    name=name,
                    version=entry.version,
                    implies_map=entry.implies_map,
                    default_features=entry.default_features,
                    optional_dependencies=entry.optional_dependencies,
                    requested_features=features,
                    default_features_requested=use_default,
                    kind=DependencyKind.WORKSPACE if inherited else kind,
                    version_req=version_req,
                    package=package,
                    table=table_path,
                    inherited=inherited,
                )
            )
        return dependencies

    # ------------------------------------------------------------------
    # lookups

    def package_names(self) -> list[str]:
        return [package.name for package in self.packages]

    def get_package(self, package_index: int) -> Package:
        if not 0 <= package_index < len(self.packages):
            raise StaleSelection(package_index, len(self.packages), "package")
        return self.packages[package_index]

    def get_dependencies(self, package_index: int) -> list[Dependency]:
        return self.get_package(package_index).dependencies

    def get_dependency(self, package_index: int, name: str) -> Dependency:
        return self.get_package(package_index).get_dependency(name)

    def get_dependency_index(self, package_index: int, name: str) -> int:
        return self.get_package(package_index).dependency_index(name)

    def dependencies_view(self, package_index: int, query: str = "") -> list[SearchMatch]:
        """Dependency names of a package, alphabetical, fuzzy-filtered by ``query``."""
        names = sorted(dependency.name for dependency in self.get_dependencies(package_index))
        return filter_names(names, query)

    # ------------------------------------------------------------------
    # persistence

    def capture(self, package_index: int) -> ManifestSnapshot:
        """Remember the exact manifest text of a package."""
        manifest = self.get_package(package_index).manifest
        return ManifestSnapshot(manifest=manifest, text=manifest.dumps())

    def restore(self, snapshot: ManifestSnapshot) -> None:
        """Write a captured manifest text back, byte for byte."""
        snapshot.manifest.replace(snapshot.text)

    def persist(self, package_index: int, dependency: Dependency) -> None:
        """Write ``dependency``'s current feature selection to its manifest."""
        package = self.get_package(package_index)
        table = package.manifest.document
        for key in dependency.table:
            table = _get(table, key)
            if table is None:
                raise ManifestError(f"[{'.'.join(dependency.table)}] missing from {package.manifest.path}")

        current = table.get(dependency.name)
        features = dependency.enabled_non_default()
        features += [feature for feature in dependency.extra_features if feature not in features]
        uses_default = dependency.uses_default_profile()

        extra_keys = [key for key in current.keys() if key not in _MANAGED_KEYS] if hasattr(current, "keys") else []
        can_be_bare = (
            uses_default
            and not features
            and not extra_keys
            and not dependency.inherited
            and dependency.version_req is not None
            and not isinstance(current, Table)
        )

        if can_be_bare:
            table[dependency.name] = dependency.version_req
        else:
            entry = current if hasattr(current, "keys") else tomlkit.inline_table()
            if dependency.inherited:
                entry.pop("version", None)
                entry["workspace"] = True
            elif dependency.version_req is not None:
                entry["version"] = dependency.version_req

            if features:
                entry["features"] = features
            else:
                entry.pop("features", None)

            entry.pop("default_features", None)
            if uses_default:
                entry.pop("default-features", None)
            else:
                entry["default-features"] = False

            if entry is not current:
                table[dependency.name] = entry

        package.manifest.save()
        logger.debug("persisted %s in %s", dependency.name, package.manifest.path)


__all__ = [
    "Document",
    "ManifestFile",
    "ManifestSnapshot",
    "Package",
    "locate_manifest",
]
