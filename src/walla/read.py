"""``walla read``: merge every archive and the staging file into one value."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from walla.archive import list_archives, read_archive
from walla.errors import StorageError, WallaError
from walla.merge import MergeSettings
from walla.staging import read_merged_value

if TYPE_CHECKING:
    from walla.value import Value

logger = logging.getLogger("walla.read")


def read_merged(data_dir: Path | str, settings: MergeSettings | None = None) -> tuple[bool, Value]:
    """Fold archives oldest to newest, then staging on top.

    Returns ``(False, None)`` if there is neither an archive nor a staging line.
    Any archive that fails verification aborts the read.
    """
    settings = settings or MergeSettings()
    found = False
    accum: Value = None

    try:
        for path in list_archives(data_dir):
            value = read_archive(path)
            accum = settings.merge(accum, value) if found else value
            found = True
            logger.debug("merged archive %s", path.name)

        staged, value = read_merged_value(data_dir, settings)
    except WallaError:
        raise
    except OSError as exc:
        raise StorageError(f"reading data directory {data_dir}") from exc

    if staged:
        accum = settings.merge(accum, value) if found else value
        found = True
    return found, accum
