"""Features.toml: feature names the pruner must never try to remove.

The file maps dependency names to lists of feature names::

    tokio = ["rt-multi-thread", "macros"]
    serde = ["derive"]
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from cargo_features.core.errors import IgnoreListMalformed


@dataclass(frozen=True)
class IgnoreList:
    """Protected feature names per dependency."""

    entries: dict[str, list[str]] = field(default_factory=dict)

    def protected(self, dependency: str) -> list[str]:
        return list(self.entries.get(dependency, []))

    def is_protected(self, dependency: str, feature: str) -> bool:
        return feature in self.entries.get(dependency, [])

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "IgnoreList":
        entries: dict[str, list[str]] = {}
        for name, value in data.items():
            if not isinstance(value, list):
                raise IgnoreListMalformed(
                    f"Invalid Features.toml format: '{name}' must be a list of feature names"
                )
            entries[str(name)] = [item for item in value if isinstance(item, str)]
        return cls(entries)


def load_ignore_list(path: Path) -> IgnoreList:
    """Load the ignore list; a missing file is an empty list, not an error."""
    if not path.exists():
        return IgnoreList()

    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise IgnoreListMalformed(f"Failed to parse {path}: {exc}") from exc

    return IgnoreList.from_dict(payload)


__all__ = ["IgnoreList", "load_ignore_list"]
