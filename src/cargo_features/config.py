"""Project configuration in .cargo-features.yaml.

Settings are resolved from, in increasing precedence: built-in defaults, the
``cargo-features:`` section of ``.cargo-features.yaml`` next to the root
manifest, ``CARGO_FEATURES_*`` environment variables, and CLI options.
"""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from cargo_features.core.constants import (
    CHECK_COMMAND_ENV_VAR,
    CONFIG_FILE,
    CONFIG_SECTION,
    DEFAULT_INDEX_URL,
    IGNORE_FILE,
    INDEX_URL_ENV_VAR,
    REGISTRY_ENV_VAR,
)
from cargo_features.core.errors import ConfigError
from cargo_features.manifest.registry import CargoMetadataRegistry, Registry, SparseIndexRegistry


class FeaturesConfig(BaseModel):
    """Resolved cargo-features settings."""

    check_command: list[str] = Field(
        default_factory=lambda: ["cargo", "check"],
        description="Command whose zero exit status means the project still builds",
    )
    check_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds before a check is abandoned (aborts the prune run)",
    )
    ignore_file: str = Field(
        default=IGNORE_FILE,
        description="Ignore list path, relative to the root manifest directory",
    )
    registry: Literal["metadata", "sparse"] = Field(
        default="metadata",
        description="Where feature metadata comes from: cargo metadata or the sparse index",
    )
    index_url: str = Field(default=DEFAULT_INDEX_URL, description="Sparse index base URL")

    @field_validator("check_command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("check_command")
    @classmethod
    def _require_command(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("check_command must not be empty")
        return value

    def ignore_path(self, root: Path) -> Path:
        return root / self.ignore_file


def _config_path(root: Path) -> Path:
    return root / CONFIG_FILE


def _read_file(root: Path) -> dict[str, Any]:
    config_path = _config_path(root)
    if not config_path.exists():
        return {}

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    except YAMLError as exc:
        raise ConfigError(f"Failed to parse {config_path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    section = payload.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{CONFIG_SECTION}' in {config_path} must be a mapping")
    return dict(section)


def load_config(
    root: Path,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> FeaturesConfig:
    """Resolve the configuration for the project rooted at ``root``.

    ``overrides`` with a value of None are ignored so CLI options can be
    passed through unconditionally.
    """
    environ = os.environ if environ is None else environ
    data = _read_file(root)

    env_values = {
        "check_command": environ.get(CHECK_COMMAND_ENV_VAR, "").strip(),
        "registry": environ.get(REGISTRY_ENV_VAR, "").strip().lower(),
        "index_url": environ.get(INDEX_URL_ENV_VAR, "").strip(),
    }
    data.update({key: value for key, value in env_values.items() if value})
    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return FeaturesConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def build_registry(config: FeaturesConfig, manifest_path: Path) -> Registry:
    """Create the registry selected by ``config``."""
    if config.registry == "sparse":
        return SparseIndexRegistry(config.index_url)
    return CargoMetadataRegistry(manifest_path)


__all__ = ["FeaturesConfig", "build_registry", "load_config"]
