"""CLI command modules for cargo-features."""

from cargo_features.cli.commands.edit import edit
from cargo_features.cli.commands.prune import prune

__all__ = ["edit", "prune"]
