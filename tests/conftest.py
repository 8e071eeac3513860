from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest

from cargo_features.core.errors import RegistryError
from cargo_features.manifest.registry import RegistryEntry


class StaticRegistry:
    """In-memory registry keyed by package name."""

    def __init__(self, entries: Iterable[RegistryEntry]):
        self.entries = {entry.name: entry for entry in entries}
        self.calls: list[tuple[str, str | None]] = []

    def resolve(self, name: str, constraint: str | None) -> RegistryEntry:
        self.calls.append((name, constraint))
        try:
            return self.entries[name]
        except KeyError:
            raise RegistryError(f"{name} not found") from None


class ScriptedOracle:
    """Oracle whose verdict is computed from the manifest text at check time."""

    def __init__(self, manifest: Path, verdict: Callable[[str], bool]):
        self.manifest = manifest
        self.verdict = verdict
        self.seen: list[str] = []

    def check(self) -> bool:
        text = self.manifest.read_text(encoding="utf-8")
        self.seen.append(text)
        return self.verdict(text)


def _entry(name, version, features, optional=()):
    return RegistryEntry(
        name=name,
        version=version,
        implies_map={key: list(value) for key, value in features.items()},
        default_features=list(features.get("default", [])),
        optional_dependencies=list(optional),
    )


@pytest.fixture()
def registry() -> StaticRegistry:
    return StaticRegistry(
        [
            _entry("demo", "1.2.0", {"default": ["a"], "a": ["b"], "b": [], "c": []}),
            _entry(
                "serde",
                "1.0.210",
                {
                    "default": ["std"],
                    "std": [],
                    "alloc": [],
                    "rc": [],
                    "derive": ["serde_derive"],
                },
                optional=["serde_derive"],
            ),
            _entry(
                "tokio",
                "1.40.0",
                {
                    "full": ["rt", "macros", "sync"],
                    "rt": [],
                    "macros": ["tokio-macros"],
                    "sync": [],
                },
                optional=["tokio-macros"],
            ),
            _entry("log", "0.4.22", {}),
            _entry("shared", "0.3.0", {"a": ["p"], "b": ["p"], "p": []}),
        ]
    )


@pytest.fixture()
def write_manifest(tmp_path: Path) -> Callable[..., Path]:
    def _write(text: str, directory: str = "") -> Path:
        target = tmp_path / directory if directory else tmp_path
        target.mkdir(parents=True, exist_ok=True)
        manifest = target / "Cargo.toml"
        manifest.write_text(text, encoding="utf-8")
        return manifest

    return _write


@pytest.fixture()
def scripted_oracle() -> Callable[[Path, Callable[[str], bool]], ScriptedOracle]:
    return ScriptedOracle
