"""Registry metadata lookups for manifest dependencies.

A registry answers one question: given a dependency name and the version
constraint written in the manifest, which version is used and what features
does it declare? Two sources are supported:

* ``CargoMetadataRegistry`` asks ``cargo metadata`` once for the whole
  workspace and reads the resolved packages from its output. This covers
  path, git and renamed dependencies.
* ``SparseIndexRegistry`` reads the crates.io sparse index over HTTP and
  picks the newest non-yanked release in the constraint's compatibility
  group. It doesn't need a Rust toolchain but only knows registry crates.

Requirements are matched with ``semantic_version``, which follows Cargo's
caret, tilde and comparator rules.
"""

from __future__ import annotations

import json
import logging
import ssl
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Protocol

import httpx
import semantic_version
import truststore

from cargo_features.core.constants import DEFAULT_FEATURE, DEFAULT_INDEX_URL
from cargo_features.core.errors import RegistryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """Feature metadata of one resolved package version."""

    name: str
    version: str
    implies_map: dict[str, list[str]] = field(default_factory=dict)
    default_features: list[str] = field(default_factory=list)
    optional_dependencies: list[str] = field(default_factory=list)


class Registry(Protocol):
    def resolve(self, name: str, constraint: str | None) -> RegistryEntry:
        ...


def _entry_from_package(name: str, version: str, features: dict[str, Any], optional: list[str]) -> RegistryEntry:
    implies_map = {str(key): [str(item) for item in value] for key, value in features.items()}
    return RegistryEntry(
        name=name,
        version=version,
        implies_map=implies_map,
        default_features=list(implies_map.get(DEFAULT_FEATURE, [])),
        optional_dependencies=optional,
    )


# ----------------------------------------------------------------------
# version helpers


def parse_version(version: str) -> semantic_version.Version | None:
    """Parse a semver string, or return None when it isn't one."""
    try:
        return semantic_version.Version(version.strip().lstrip("v"))
    except ValueError:
        return None


def requirement_spec(constraint: str) -> semantic_version.SimpleSpec:
    """Translate a Cargo version requirement into a ``SimpleSpec``.

    Cargo reads a bare version as a caret requirement, while ``SimpleSpec``
    reads it as an exact match, so bare clauses get an explicit ``^``.
    Wildcard clauses such as ``1.*`` become ``==1.*``.
    """
    clauses = []
    for clause in constraint.split(","):
        clause = clause.replace(" ", "")
        if clause[:1].isdigit():
            clause = ("==" if "*" in clause else "^") + clause
        elif clause.startswith("=") and not clause.startswith("=="):
            clause = "=" + clause
        clauses.append(clause)
    try:
        return semantic_version.SimpleSpec(",".join(clauses))
    except ValueError as exc:
        raise RegistryError(f"unsupported version requirement '{constraint}'") from exc


def is_compatible(constraint: str | None, version: str) -> bool:
    """Return True when ``version`` satisfies the Cargo requirement ``constraint``.

    Pre-releases only match requirements that name a pre-release themselves.
    """
    parsed = parse_version(version)
    if parsed is None:
        return False
    if parsed.prerelease and (constraint is None or "-" not in constraint):
        return False
    if constraint is None or constraint.strip() in ("", "*"):
        return True
    return parsed in requirement_spec(constraint)


def _pick(name: str, constraint: str | None, candidates: list[dict[str, Any]], version_field: str) -> dict[str, Any]:
    parsed = []
    for candidate in candidates:
        version = parse_version(str(candidate[version_field]))
        if version is not None:
            parsed.append((version, candidate))
    matching = [(version, candidate) for version, candidate in parsed if is_compatible(constraint, str(version))]
    if not matching and constraint is None:
        matching = parsed
    if not matching:
        raise RegistryError(f"no version of {name} matches '{constraint}'")
    return max(matching, key=lambda pair: pair[0])[1]


# ----------------------------------------------------------------------
# cargo metadata


class CargoMetadataRegistry:
    """Resolve dependencies from ``cargo metadata`` output."""

    def __init__(
        self,
        manifest_path: Path,
        cargo: str = "cargo",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.manifest_path = Path(manifest_path)
        self.cargo = cargo
        self._runner = runner
        self._packages: dict[str, list[dict[str, Any]]] | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any], manifest_path: Path = Path("Cargo.toml")) -> "CargoMetadataRegistry":
        """Build a registry from an already parsed ``cargo metadata`` document."""
        registry = cls(manifest_path)
        registry._packages = registry._index(payload)
        return registry

    def _run_metadata(self) -> dict[str, Any]:
        command = [self.cargo, "metadata", "--format-version", "1", "--manifest-path", str(self.manifest_path)]
        logger.debug("running %s", " ".join(command))
        try:
            completed = self._runner(
                command,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
            )
        except FileNotFoundError as exc:
            raise RegistryError(f"{self.cargo} executable not found on PATH") from exc

        if completed.returncode != 0:
            detail = (completed.stderr or "").strip().splitlines()
            message = detail[-1] if detail else f"exit status {completed.returncode}"
            raise RegistryError(f"cargo metadata failed: {message}")

        try:
            return json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise RegistryError(f"cargo metadata returned invalid JSON: {exc}") from exc

    @staticmethod
    def _index(payload: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
        packages: dict[str, list[dict[str, Any]]] = {}
        for package in payload.get("packages", []):
            if isinstance(package, dict) and "name" in package:
                packages.setdefault(str(package["name"]), []).append(package)
        return packages

    def _ensure_loaded(self) -> dict[str, list[dict[str, Any]]]:
        if self._packages is None:
            self._packages = self._index(self._run_metadata())
        return self._packages

    def resolve(self, name: str, constraint: str | None) -> RegistryEntry:
        candidates = self._ensure_loaded().get(name)
        if not candidates:
            raise RegistryError(f"{name} not found in cargo metadata")

        package = candidates[0] if len(candidates) == 1 else _pick(name, constraint, candidates, "version")
        optional = [
            str(dep.get("rename") or dep["name"])
            for dep in package.get("dependencies", [])
            if dep.get("optional")
        ]
        logger.debug("resolved %s %s -> %s", name, constraint, package.get("version"))
        return _entry_from_package(name, str(package.get("version", "")), package.get("features", {}), optional)


# ----------------------------------------------------------------------
# sparse index


def index_path(name: str) -> str:
    """Relative path of a crate's file in the sparse index."""
    lowered = name.lower()
    if len(lowered) == 1:
        return f"1/{lowered}"
    if len(lowered) == 2:
        return f"2/{lowered}"
    if len(lowered) == 3:
        return f"3/{lowered[0]}/{lowered}"
    return f"{lowered[:2]}/{lowered[2:4]}/{lowered}"


class SparseIndexRegistry:
    """Resolve dependencies from the crates.io sparse index."""

    def __init__(self, index_url: str = DEFAULT_INDEX_URL, client: httpx.Client | None = None, timeout: float = 10.0):
        self.index_url = index_url.rstrip("/")
        self.timeout = timeout
        self._http_client = client
        self._records: dict[str, list[dict[str, Any]]] = {}

    def _get_http_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._http_client is None:
            ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            self._http_client = httpx.Client(verify=ssl_context, timeout=self.timeout)
        return self._http_client

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()

    def _fetch(self, name: str) -> list[dict[str, Any]]:
        if name in self._records:
            return self._records[name]

        url = f"{self.index_url}/{index_path(name)}"
        logger.debug("fetching %s", url)
        try:
            response = self._get_http_client().get(url)
        except httpx.RequestError as exc:
            raise RegistryError(f"Cannot reach registry index: {exc}") from exc

        if response.status_code == 404:
            raise RegistryError(f"{name} not found in registry index")
        if response.status_code != 200:
            raise RegistryError(f"Registry index error for {name}: {response.status_code}")

        records: list[dict[str, Any]] = []
        for line in response.text.splitlines():
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise RegistryError(f"Malformed index record for {name}: {exc}") from exc

        self._records[name] = records
        return records

    def resolve(self, name: str, constraint: str | None) -> RegistryEntry:
        releases = [record for record in self._fetch(name) if not record.get("yanked")]
        if not releases:
            raise RegistryError(f"{name} has no published releases")

        record = _pick(name, constraint, releases, "vers")
        features = {**record.get("features", {}), **record.get("features2", {})}
        optional = [str(dep["name"]) for dep in record.get("deps", []) if dep.get("optional")]
        return _entry_from_package(name, str(record["vers"]), features, optional)


__all__ = [
    "CargoMetadataRegistry",
    "Registry",
    "RegistryEntry",
    "SparseIndexRegistry",
    "index_path",
    "is_compatible",
    "parse_version",
    "requirement_spec",
]
