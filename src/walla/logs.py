"""Logging setup driven by the WALLA_LOG environment variable.

WALLA_LOG is a comma-separated list of directives:

    debug                           level for every walla.* logger
    walla.archive=debug             level for one logger
    info,walla.staging=debug        both

Everything goes to stderr; stdout is reserved for ``walla read`` output.
"""

from __future__ import annotations

import logging
import os

ENV_VAR = "WALLA_LOG"
ROOT_LOGGER = "walla"
_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger("walla.logs")


def _level(name: str) -> int | None:
    name = name.strip().upper()
    if name == "TRACE":
        return logging.DEBUG
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else None


def parse_directives(directive: str) -> tuple[int | None, dict[str, int], list[str]]:
    """Split a directive string into (default level, per-logger levels, rejected parts)."""
    default: int | None = None
    targets: dict[str, int] = {}
    rejected: list[str] = []
    for part in directive.split(","):
        part = part.strip()
        if not part:
            continue
        target, sep, level_name = part.partition("=")
        level = _level(level_name if sep else target)
        if level is None:
            rejected.append(part)
        elif sep:
            targets[target.strip()] = level
        else:
            default = level
    return default, targets, rejected


def setup_logging(directive: str | None = None) -> None:
    """Configure logging from ``directive`` (default: $WALLA_LOG)."""
    if directive is None:
        directive = os.environ.get(ENV_VAR, "")
    default, targets, rejected = parse_directives(directive)

    logging.basicConfig(level=logging.WARNING, format=_FORMAT)
    logging.getLogger(ROOT_LOGGER).setLevel(default if default is not None else logging.WARNING)
    for name, level in targets.items():
        logging.getLogger(name).setLevel(level)
    for part in rejected:
        logger.warning("ignoring unrecognised %s directive: %r", ENV_VAR, part)
