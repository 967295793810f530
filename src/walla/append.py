"""``walla append``: stream NDJSON into staging and roll it into archives.

For each input line:

    1. parse it (a bad line stops the run; earlier lines stay in staging)
    2. re-serialize it compactly and append it to staging.jsonl
    3. if staging has grown past the limit: close it, fold every staging
       line into one value, write that to a new archive, delete staging

Staging is always flushed before returning, on success or on error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from walla.archive import write_archive
from walla.errors import InputParseError, StorageError, WallaError
from walla.jsonl import dumps, parse_line
from walla.merge import MergeSettings
from walla.staging import StagingWriter, delete_staging_file, read_merged_value

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger("walla.append")


@dataclass
class AppendResult:
    lines: int = 0
    bytes_written: int = 0
    archives: list[Path] = field(default_factory=list)


def archive_staging(data_dir: Path | str, settings: MergeSettings | None = None) -> Path | None:
    """Roll the staging file into a new archive and delete it.

    Returns the archive path, or None when staging held nothing to archive.
    The staging file is only removed after the archive is fully written.
    """
    found, value = read_merged_value(data_dir, settings)
    if not found:
        logger.warning("staging file was empty, not archiving")
        return None
    path = write_archive(data_dir, value)
    delete_staging_file(data_dir)
    return path


class _Appender:
    def __init__(self, data_dir: Path, staging_limit: int, settings: MergeSettings) -> None:
        self.data_dir = data_dir
        self.staging_limit = staging_limit
        self.settings = settings
        self.staging: StagingWriter | None = None
        self.result = AppendResult()

    def close(self) -> None:
        if self.staging is not None:
            self.staging.close()
            self.staging = None

    def append_line(self, line: bytes | str, line_no: int) -> None:
        if isinstance(line, bytes):
            try:
                line = line.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InputParseError(f"not valid UTF-8: {exc}", line_no=line_no) from exc
        value = parse_line(line, line_no=line_no)
        try:
            data = (dumps(value) + "\n").encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InputParseError(f"not encodable as UTF-8: {exc}", line_no=line_no) from exc

        if self.staging is None:
            try:
                self.staging = StagingWriter(self.data_dir)
            except OSError as exc:
                raise StorageError("opening staging file for writing") from exc
        staging = self.staging

        try:
            staging.write(data)
        except OSError as exc:
            raise StorageError("writing to staging file") from exc
        self.result.lines += 1
        self.result.bytes_written += len(data)
        logger.debug("appended %d bytes, staging now %d bytes", len(data), staging.size)

        if staging.size > self.staging_limit:
            logger.info(
                "staging file is %d bytes (%d added), past limit of %d, archiving",
                staging.size, staging.written, self.staging_limit,
            )
            self.rollover()

    def rollover(self) -> None:
        self.close()
        try:
            path = archive_staging(self.data_dir, self.settings)
        except WallaError:
            raise
        except OSError as exc:
            raise StorageError("archiving staging file") from exc
        if path is not None:
            self.result.archives.append(path)


def run_append(
    data_dir: Path | str,
    lines: Iterable[bytes] | Iterable[str],
    *,
    staging_limit: int,
    settings: MergeSettings | None = None,
) -> AppendResult:
    """Append every line of ``lines`` to the data directory.

    ``lines`` are raw bytes as read from stdin, or already-decoded text.

    Raises InputParseError on a malformed line and StorageError on IO failure;
    everything staged before the failure is flushed to disk first.
    """
    data_path = Path(data_dir)
    try:
        data_path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"creating data directory {data_path}") from exc

    appender = _Appender(data_path, staging_limit, settings or MergeSettings())
    try:
        for line_no, line in enumerate(lines, start=1):
            appender.append_line(line, line_no)
    finally:
        appender.close()
    logger.debug(
        "append done: %d lines, %d bytes, %d archives",
        appender.result.lines, appender.result.bytes_written, len(appender.result.archives),
    )
    return appender.result
