"""WallaConfig: optional per-data-directory configuration.

Layout:

    <data_dir>/
        walla.toml          # optional
        staging.jsonl
        archived/

walla.toml example:

    [append]
    staging_limit = "1MB"       # human size; 1 MB = 1_000_000 bytes

    [merge]
    array_behavior = "concat"   # concat | merge | union | replace
    null_behavior = "merge"     # merge | ignore

Merge settings are read from the data directory only, so every command that
touches a directory folds values the same way.  The staging limit can also
come from WALLA_STAGING_LIMIT or --staging-limit (flag > env > file > default).
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import TYPE_CHECKING, Any

from walla.errors import ConfigError
from walla.merge import ArrayBehavior, MergeSettings, NullBehavior

if TYPE_CHECKING:
    from collections.abc import Mapping

_CONFIG_FILENAME = "walla.toml"
_ENV_STAGING_LIMIT = "WALLA_STAGING_LIMIT"

DEFAULT_STAGING_LIMIT = 1_000_000

_SIZE_RE = re.compile(r"\s*([0-9]+(?:\.[0-9]+)?)\s*([A-Za-z]*)\s*")
_SIZE_UNITS = {
    "": 1,
    "b": 1, "byte": 1, "bytes": 1,
    "k": 10**3, "kb": 10**3, "kilobyte": 10**3, "kilobytes": 10**3,
    "m": 10**6, "mb": 10**6, "megabyte": 10**6, "megabytes": 10**6,
    "g": 10**9, "gb": 10**9, "gigabyte": 10**9, "gigabytes": 10**9,
    "t": 10**12, "tb": 10**12, "terabyte": 10**12, "terabytes": 10**12,
    "kib": 2**10, "mib": 2**20, "gib": 2**30, "tib": 2**40,
}


def parse_size(text: str | int) -> int:
    """Parse a human size such as ``"1MB"``, ``"512 KiB"`` or ``"2048"`` into bytes."""
    if isinstance(text, int) and not isinstance(text, bool):
        if text < 0:
            msg = f"size must not be negative: {text}"
            raise ConfigError(msg)
        return text
    m = _SIZE_RE.fullmatch(str(text))
    if m is None:
        msg = f"invalid size: {text!r}"
        raise ConfigError(msg)
    number, unit = m.groups()
    multiplier = _SIZE_UNITS.get(unit.lower())
    if multiplier is None:
        msg = f"unknown size unit {unit!r} in {text!r}"
        raise ConfigError(msg)
    try:
        return int(Decimal(number) * multiplier)
    except InvalidOperation as exc:
        raise ConfigError(f"invalid size: {text!r}") from exc


@dataclass
class AppendConfig:
    staging_limit: int = DEFAULT_STAGING_LIMIT


@dataclass
class WallaConfig:
    """Resolved configuration for one data directory."""

    data_dir: Path
    append: AppendConfig = field(default_factory=AppendConfig)
    merge: MergeSettings = field(default_factory=MergeSettings)

    @property
    def config_path(self) -> Path:
        return self.data_dir / _CONFIG_FILENAME


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def load_config(data_dir: Path | str) -> WallaConfig:
    """Load walla.toml from ``data_dir``; a missing file means defaults."""
    data_path = Path(data_dir)
    raw = _read_toml(data_path / _CONFIG_FILENAME)

    append_section = raw.get("append", {})
    merge_section = raw.get("merge", {})
    if not isinstance(append_section, dict) or not isinstance(merge_section, dict):
        msg = f"{data_path / _CONFIG_FILENAME}: [append] and [merge] must be tables"
        raise ConfigError(msg)

    staging_limit = parse_size(append_section.get("staging_limit", DEFAULT_STAGING_LIMIT))

    return WallaConfig(
        data_dir=data_path,
        append=AppendConfig(staging_limit=staging_limit),
        merge=MergeSettings(
            array_behavior=ArrayBehavior.parse(str(merge_section.get("array_behavior", "concat"))),
            null_behavior=NullBehavior.parse(str(merge_section.get("null_behavior", "merge"))),
        ),
    )


def resolve_staging_limit(
    config: WallaConfig,
    flag: int | None = None,
    env: Mapping[str, str] | None = None,
) -> int:
    """Pick the staging limit: ``flag``, then $WALLA_STAGING_LIMIT, then walla.toml."""
    if flag is not None:
        return flag
    env = os.environ if env is None else env
    if env.get(_ENV_STAGING_LIMIT):
        return parse_size(env[_ENV_STAGING_LIMIT])
    return config.append.staging_limit
