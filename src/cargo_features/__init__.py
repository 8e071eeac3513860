"""
cargo-features - manage the features of Cargo dependencies.

Usage:
    cargo features                    # interactive editor
    cargo features -d serde           # open serde's features directly
    cargo features prune --dry-run    # list features the build doesn't need
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from cargo_features.cli.commands import edit, prune
from cargo_features.cli.helpers import configure_logging

__version__ = "0.1.0"

app = typer.Typer(
    name="cargo-features",
    help="Enable, disable and prune the features of Cargo dependencies",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def callback(
    ctx: typer.Context,
    dependency: Optional[str] = typer.Option(None, "--dependency", "-d", help="Open this dependency's features directly"),
    manifest_path: Optional[Path] = typer.Option(None, "--manifest-path", help="Path to Cargo.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging on stderr"),
) -> None:
    """Launch the feature editor when no subcommand is given."""
    configure_logging(verbose)
    ctx.obj = {"manifest_path": manifest_path}
    if ctx.invoked_subcommand is None:
        edit(dependency=dependency, manifest_path=manifest_path)


app.command("prune")(prune)


def main():
    args = sys.argv[1:]
    # cargo passes the subcommand name through: `cargo features ...` runs `cargo-features features ...`
    if args and args[0] == "features":
        args = args[1:]
    app(args=args, prog_name="cargo features")


if __name__ == "__main__":
    main()
