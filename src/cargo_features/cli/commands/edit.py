"""Interactive editor command."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from cargo_features.cli.editor import Editor
from cargo_features.cli.helpers import console, load_project, run_or_exit


def edit(dependency: Optional[str] = None, manifest_path: Optional[Path] = None) -> None:
    """Open the feature editor, optionally straight on ``dependency``."""

    def _run() -> None:
        document, _config = load_project(manifest_path)
        editor = Editor(document, console=console)
        if dependency:
            editor.select_dependency(dependency)
        editor.run()

    run_or_exit(_run)


__all__ = ["edit"]
