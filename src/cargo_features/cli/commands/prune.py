"""Prune command: drop enabled features the build doesn't need."""

from __future__ import annotations

import json
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.live import Live
from rich.table import Table

from cargo_features.cli.helpers import console, err_console, load_project, run_or_exit
from cargo_features.cli.ui import PruneTracker
from cargo_features.prune import CommandOracle, PruneReport, Pruner, load_ignore_list


class CancelFlag:
    """First Ctrl-C asks the pruner to stop at the next trial boundary."""

    def __init__(self) -> None:
        self._requested = False

    def is_set(self) -> bool:
        return self._requested

    def request(self) -> None:
        self._requested = True

    def _handle(self, signum, frame) -> None:
        if self._requested:
            raise KeyboardInterrupt
        self.request()
        err_console.print("[yellow]Stopping after the current trial (Ctrl-C again to abort now)...[/yellow]")

    @contextmanager
    def installed(self) -> Iterator["CancelFlag"]:
        if threading.current_thread() is not threading.main_thread():
            yield self
            return
        previous = signal.signal(signal.SIGINT, self._handle)
        try:
            yield self
        finally:
            signal.signal(signal.SIGINT, previous)


def _print_summary(report: PruneReport) -> None:
    removable = [outcome for outcome in report.outcomes if outcome.accepted]
    if report.cancelled:
        console.print("[yellow]Pruning cancelled; the manifest was left at the last verified state.[/yellow]")
    if not removable:
        console.print("[green]No features could be removed.[/green]")
        return

    title = "Features that would be removed" if report.dry_run else "Removed features"
    table = Table(title=title, show_lines=False)
    table.add_column("Package", style="cyan")
    table.add_column("Dependency", style="bold")
    table.add_column("Features", style="red")
    for outcome in removable:
        table.add_row(outcome.package, outcome.dependency, ", ".join(outcome.accepted))
    console.print(table)

    if not report.dry_run:
        console.print(
            "[dim]Removals were checked one at a time; run the check command again to confirm the combined result.[/dim]"
        )


def prune(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Only report which features could be removed"),
    manifest_path: Optional[Path] = typer.Option(None, "--manifest-path", help="Path to Cargo.toml"),
    check_command: Optional[str] = typer.Option(
        None,
        "--check-command",
        help="Command that validates the build (default: cargo check)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
) -> None:
    """Remove enabled dependency features the project builds without."""

    manifest = manifest_path or (ctx.obj or {}).get("manifest_path")

    def _run() -> PruneReport:
        document, config = load_project(manifest, check_command=check_command)
        ignore_list = load_ignore_list(config.ignore_path(document.root))
        oracle = CommandOracle(config.check_command, cwd=document.root, timeout=config.check_timeout)
        cancel = CancelFlag()

        with cancel.installed():
            if as_json:
                return Pruner(document, oracle, ignore_list, dry_run=dry_run, should_cancel=cancel.is_set).run()

            title = "Pruning features (dry run)" if dry_run else "Pruning features"
            tracker = PruneTracker(title, dry_run=dry_run)
            with Live(tracker.render(), console=console, refresh_per_second=8, transient=False) as live:
                tracker.attach_refresh(lambda: live.update(tracker.render()))
                pruner = Pruner(
                    document,
                    oracle,
                    ignore_list,
                    dry_run=dry_run,
                    on_event=tracker.handle,
                    should_cancel=cancel.is_set,
                )
                return pruner.run()

    report = run_or_exit(_run)

    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        _print_summary(report)

    if report.cancelled:
        raise typer.Exit(130)


__all__ = ["CancelFlag", "prune"]
