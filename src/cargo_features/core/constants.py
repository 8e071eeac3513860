"""Shared file names and environment variables."""

from __future__ import annotations

MANIFEST_FILE = "Cargo.toml"
IGNORE_FILE = "Features.toml"
CONFIG_FILE = ".cargo-features.yaml"
CONFIG_SECTION = "cargo-features"

DEFAULT_FEATURE = "default"
WORKSPACE_PACKAGE = "workspace"

CHECK_COMMAND_ENV_VAR = "CARGO_FEATURES_CHECK_COMMAND"
REGISTRY_ENV_VAR = "CARGO_FEATURES_REGISTRY"
INDEX_URL_ENV_VAR = "CARGO_FEATURES_INDEX_URL"

DEFAULT_INDEX_URL = "https://index.crates.io"

__all__ = [
    "MANIFEST_FILE",
    "IGNORE_FILE",
    "CONFIG_FILE",
    "CONFIG_SECTION",
    "DEFAULT_FEATURE",
    "WORKSPACE_PACKAGE",
    "CHECK_COMMAND_ENV_VAR",
    "REGISTRY_ENV_VAR",
    "INDEX_URL_ENV_VAR",
    "DEFAULT_INDEX_URL",
]
