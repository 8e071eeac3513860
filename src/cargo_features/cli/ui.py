"""Reusable UI helpers for cargo-features terminal interactions."""

from __future__ import annotations

from dataclasses import dataclass, field

import readchar
from rich.tree import Tree

from cargo_features.prune.pruner import (
    DependencyFinished,
    DependencyStarted,
    PackageStarted,
    PruneEvent,
    TrialFinished,
    TrialStarted,
)


def get_key() -> str:
    """Get a single keypress in a cross-platform way using readchar."""
    key = readchar.readkey()

    if key == readchar.key.UP or key == readchar.key.CTRL_P:
        return "up"
    if key == readchar.key.DOWN or key == readchar.key.CTRL_N:
        return "down"
    if key == readchar.key.LEFT:
        return "left"
    if key == readchar.key.RIGHT:
        return "right"

    if key == readchar.key.ENTER:
        return "enter"

    if key == readchar.key.BACKSPACE:
        return "backspace"

    if key == readchar.key.ESC or key == "\x1b":
        return "escape"

    if key == readchar.key.CTRL_C:
        raise KeyboardInterrupt

    return key


@dataclass
class _DependencyRow:
    name: str
    total: int
    done: int = 0
    status: str = "running"
    current: str = ""
    removable: list[str] = field(default_factory=list)


@dataclass
class _PackageRow:
    name: str
    dependencies: list[_DependencyRow] = field(default_factory=list)


class PruneTracker:
    """Track pruning events and render them as a Rich tree."""

    def __init__(self, title: str, dry_run: bool = False):
        self.title = title
        self.dry_run = dry_run
        self.packages: list[_PackageRow] = []
        self._refresh_cb = None  # callable to trigger UI refresh

    def attach_refresh(self, cb):
        self._refresh_cb = cb

    def _current_dependency(self, name: str) -> _DependencyRow | None:
        if not self.packages:
            return None
        for row in reversed(self.packages[-1].dependencies):
            if row.name == name:
                return row
        return None

    def handle(self, event: PruneEvent) -> None:
        if isinstance(event, PackageStarted):
            self.packages.append(_PackageRow(event.package))
        elif isinstance(event, DependencyStarted):
            if not self.packages:
                self.packages.append(_PackageRow(event.package))
            self.packages[-1].dependencies.append(_DependencyRow(event.dependency, total=len(event.candidates)))
        elif isinstance(event, TrialStarted):
            row = self._current_dependency(event.dependency)
            if row is not None:
                row.current = event.feature
        elif isinstance(event, TrialFinished):
            row = self._current_dependency(event.dependency)
            if row is not None:
                row.done = event.index
                if event.removable:
                    row.removable.append(event.feature)
        elif isinstance(event, DependencyFinished):
            row = self._current_dependency(event.outcome.dependency)
            if row is not None:
                row.current = ""
                row.status = "done" if row.done == row.total else "skipped"
        self._maybe_refresh()

    def _maybe_refresh(self):
        if self._refresh_cb:
            self._refresh_cb()

    def render(self) -> Tree:
        tree = Tree(f"[cyan]{self.title}[/cyan]", guide_style="grey50")
        for package in self.packages:
            branch = tree.add(f"[white]{package.name}[/white]")
            for row in package.dependencies:
                if row.status == "done":
                    symbol = "[green]●[/green]"
                elif row.status == "running":
                    symbol = "[cyan]○[/cyan]"
                else:
                    symbol = "[yellow]○[/yellow]"

                # progress while running, removable count once finished
                if row.status == "running":
                    count = str(row.done)
                elif row.removable:
                    count = f"[red]{len(row.removable)}[/red]"
                else:
                    count = "0"
                line = f"{symbol} [white]{row.name}[/white] [bright_black][{count}/{row.total}][/bright_black]"
                node = branch.add(line)
                if row.current:
                    node.add(f"[bright_black]{row.current}[/bright_black]")
                elif row.removable:
                    verb = "would remove" if self.dry_run else "removed"
                    node.add(f"[bright_black]{verb}:[/bright_black] [red]{', '.join(row.removable)}[/red]")
        return tree


__all__ = ["PruneTracker", "get_key"]
