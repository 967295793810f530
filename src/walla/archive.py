"""Archive files: one merged value per file, CBOR body behind a checked header.

Layout of ``<data_dir>/archived/YYYY-MM-DD-HH-MM-SS.bin``:

    offset 0   magic     b"WALL\\xe2\\x80\\xa2A"   (UTF-8 for "WALL•A")
    offset 8   version   u32 big-endian, currently 1
    offset 12  checksum  CRC32 of the body, u32 big-endian
    offset 16  body      walla.cbor encoding of the value

The writer puts down a header with a zero checksum, streams the body through
a CRC32 accumulator, then seeks back and rewrites the header.  A file that
never got its final header fails verification on read.  Archives are created
with exclusive-create and are never modified afterwards.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import struct
import zlib
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING

from walla import cbor
from walla.errors import ArchiveCollisionError, IntegrityError, ValueDepthError

if TYPE_CHECKING:
    from walla.value import Value

logger = logging.getLogger("walla.archive")

MAGIC = b"WALL\xe2\x80\xa2A"
VERSION = 1
ARCHIVE_DIR = "archived"
ARCHIVE_SUFFIX = ".bin"

_HEADER = struct.Struct(">8sII")
HEADER_SIZE = _HEADER.size  # 16


@dataclass(frozen=True)
class ArchiveHeader:
    magic: bytes = MAGIC
    version: int = VERSION
    checksum: int = 0

    def pack(self) -> bytes:
        return _HEADER.pack(self.magic, self.version, self.checksum)

    @classmethod
    def unpack(cls, raw: bytes) -> ArchiveHeader:
        magic, version, checksum = _HEADER.unpack(raw)
        return cls(magic=magic, version=version, checksum=checksum)

    @classmethod
    def for_body(cls, body: bytes) -> ArchiveHeader:
        return cls(checksum=zlib.crc32(body))

    def matches(self, body: bytes) -> bool:
        return self.checksum == zlib.crc32(body)


class _ChecksumWriter(io.RawIOBase):
    """Writes through to ``inner`` while keeping a running CRC32 of the body.

    Closing it leaves ``inner`` open.
    """

    def __init__(self, inner: IO[bytes]) -> None:
        super().__init__()
        self.inner = inner
        self.start = inner.tell()
        self.crc = 0
        inner.write(ArchiveHeader().pack())

    def writable(self) -> bool:
        return True

    def write(self, data: bytes) -> int:  # type: ignore[override]
        self.crc = zlib.crc32(data, self.crc)
        return self.inner.write(data)

    def finish(self) -> ArchiveHeader:
        """Back-patch the header with the final checksum and sync to disk."""
        self.inner.flush()
        header = ArchiveHeader(checksum=self.crc)
        self.inner.seek(self.start)
        self.inner.write(header.pack())
        self.inner.flush()
        os.fsync(self.inner.fileno())
        return header


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def archive_dir(data_dir: Path | str) -> Path:
    return Path(data_dir) / ARCHIVE_DIR


def archive_filename(now: datetime | None = None) -> str:
    """``2024-06-19-19-22-45.bin``: sorts lexicographically in time order."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).strftime("%Y-%m-%d-%H-%M-%S") + ARCHIVE_SUFFIX


def list_archives(data_dir: Path | str) -> list[Path]:
    """Archive files oldest first. A missing archive directory is empty."""
    directory = archive_dir(data_dir)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix == ARCHIVE_SUFFIX and p.is_file())


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


def write_archive(data_dir: Path | str, value: Value, *, now: datetime | None = None) -> Path:
    """Write ``value`` to a new archive file and return its path.

    Raises ArchiveCollisionError if an archive with the same second already
    exists; the caller may retry with a later timestamp.
    """
    directory = archive_dir(data_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / archive_filename(now)

    logger.debug("creating archive file %s", path)
    try:
        f = path.open("xb")
    except FileExistsError as exc:
        raise ArchiveCollisionError(path) from exc

    with f:
        try:
            writer = _ChecksumWriter(f)
            cbor.dump(value, writer)
            header = writer.finish()
        except BaseException:
            # no partial archive is left behind
            f.close()
            with contextlib.suppress(OSError):
                path.unlink()
            raise

    logger.info("wrote archive %s (checksum %08x)", path.name, header.checksum)
    return path


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


def _read_verified(path: Path) -> tuple[ArchiveHeader, bytes]:
    with path.open("rb") as f:
        raw = f.read(HEADER_SIZE)
        if len(raw) < HEADER_SIZE:
            raise IntegrityError(path, f"truncated header ({len(raw)} of {HEADER_SIZE} bytes)")
        header = ArchiveHeader.unpack(raw)
        if header.magic != MAGIC:
            raise IntegrityError(path, f"bad magic {header.magic!r}, not a walla archive")
        if header.version != VERSION:
            raise IntegrityError(path, f"unsupported archive version {header.version}")
        body = f.read()

    # header-only file: crashed before the first body write
    if not body:
        raise IntegrityError(path, "empty body")

    actual = zlib.crc32(body)
    if actual != header.checksum:
        raise IntegrityError(
            path,
            f"checksum mismatch: body is [{actual:08x}], header says [{header.checksum:08x}]",
        )
    return header, body


def read_header(path: Path | str) -> ArchiveHeader:
    """Read the raw header without any verification."""
    with Path(path).open("rb") as f:
        raw = f.read(HEADER_SIZE)
    if len(raw) < HEADER_SIZE:
        raise IntegrityError(path, f"truncated header ({len(raw)} of {HEADER_SIZE} bytes)")
    return ArchiveHeader.unpack(raw)


def _decode(path: Path, body: bytes) -> Value:
    try:
        return cbor.loads(body)
    except (ValueError, ValueDepthError) as exc:
        raise IntegrityError(path, f"undecodable body: {exc}") from exc


def verify_archive(path: Path | str) -> ArchiveHeader:
    """Check magic, version and checksum, and that the body decodes.

    Returns the header if all is well.
    """
    path = Path(path)
    header, body = _read_verified(path)
    _decode(path, body)
    return header


def read_archive(path: Path | str) -> Value:
    """Verify and decode one archive file."""
    path = Path(path)
    logger.debug("reading archive %s", path)
    _, body = _read_verified(path)
    return _decode(path, body)
