"""Shared helpers for cargo-features commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from cargo_features.config import FeaturesConfig, build_registry, load_config
from cargo_features.core.errors import CargoFeaturesError, ManifestError
from cargo_features.manifest.document import Document, locate_manifest

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def configure_logging(verbose: bool) -> None:
    """Route library logging to stderr through Rich."""
    root = logging.getLogger("cargo_features")
    root.handlers.clear()
    root.addHandler(RichHandler(console=err_console, show_path=False, markup=False))
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


def resolve_manifest(manifest_path: Path | None) -> Path:
    """Use ``--manifest-path`` when given, otherwise the nearest Cargo.toml."""
    if manifest_path is not None:
        if not manifest_path.is_file():
            raise ManifestError(f"manifest path `{manifest_path}` does not exist")
        return manifest_path.resolve()

    found = locate_manifest(Path.cwd())
    if found is None:
        raise ManifestError(f"could not find `Cargo.toml` in `{Path.cwd()}` or any parent directory")
    return found


def load_project(manifest_path: Path | None, **overrides: Any) -> tuple[Document, FeaturesConfig]:
    """Resolve config and load the manifest with the configured registry."""
    path = resolve_manifest(manifest_path)
    config = load_config(path.parent, **overrides)
    registry = build_registry(config, path)
    try:
        document = Document.load(path, registry)
    finally:
        close = getattr(registry, "close", None)
        if close is not None:
            close()
    return document, config


def run_or_exit(fn: Callable[[], T]) -> T:
    """Run ``fn`` and turn cargo-features errors into ``error: ...`` + exit 1."""
    try:
        return fn()
    except CargoFeaturesError as exc:
        err_console.print(Text.assemble(("error", "bold red"), f": {exc}"), highlight=False, soft_wrap=True)
        raise typer.Exit(1) from exc


__all__ = [
    "configure_logging",
    "console",
    "err_console",
    "load_project",
    "resolve_manifest",
    "run_or_exit",
]
