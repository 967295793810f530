"""The staging file: ``<data_dir>/staging.jsonl``.

One compact JSON value per line, LF terminated, appended in arrival order.
There is no locking; a data directory has a single writer at a time.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from walla.errors import InputParseError
from walla.jsonl import parse_line
from walla.merge import MergeSettings, merge_all

if TYPE_CHECKING:
    from collections.abc import Iterator

    from walla.value import Value

logger = logging.getLogger("walla.staging")

STAGING_FILENAME = "staging.jsonl"


def staging_path(data_dir: Path | str) -> Path:
    return Path(data_dir) / STAGING_FILENAME


def delete_staging_file(data_dir: Path | str) -> None:
    """Unlink the staging file. A missing file is an error here."""
    path = staging_path(data_dir)
    path.unlink()
    logger.debug("deleted staging file %s", path)


class StagingWriter:
    """Buffered append handle on the staging file.

    ``initial_len`` is the file size when it was opened; callers add the
    bytes they write to it instead of re-stat'ing the file.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.path = staging_path(data_dir)
        self._f = self.path.open("ab")
        self.initial_len = os.fstat(self._f.fileno()).st_size
        self.written = 0
        logger.debug("opened staging file %s (%d bytes)", self.path, self.initial_len)

    def __enter__(self) -> StagingWriter:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def size(self) -> int:
        return self.initial_len + self.written

    @property
    def closed(self) -> bool:
        return self._f.closed

    def write(self, data: bytes) -> None:
        self._f.write(data)
        self.written += len(data)

    def flush(self) -> None:
        if not self._f.closed:
            self._f.flush()

    def close(self) -> None:
        if not self._f.closed:
            self._f.close()


def iter_values(data_dir: Path | str) -> Iterator[Value]:
    """Yield every value in the staging file in append order."""
    path = staging_path(data_dir)
    with path.open("rb") as f:
        for line_no, raw in enumerate(f, start=1):
            try:
                value = parse_line(raw.decode("utf-8"), line_no=line_no)
            except UnicodeDecodeError as exc:
                msg = f"corrupt staging file {path}: line {line_no}: not valid UTF-8: {exc}"
                raise InputParseError(msg) from exc
            except InputParseError as exc:
                msg = f"corrupt staging file {path}: {exc}"
                raise InputParseError(msg) from exc
            yield value


def read_merged_value(
    data_dir: Path | str,
    settings: MergeSettings | None = None,
) -> tuple[bool, Value]:
    """Fold all staging lines, oldest first.

    Returns ``(False, None)`` when the file is missing or has no lines.
    """
    path = staging_path(data_dir)
    if not path.exists():
        return False, None
    logger.debug("reading staging file %s", path)
    return merge_all(iter_values(data_dir), settings)
