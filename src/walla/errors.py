"""Exception types raised by walla.

IO failures stay ``OSError``; the drivers attach operation context with
``raise ... from exc`` and the CLI prints the whole cause chain.
"""

from __future__ import annotations

from pathlib import Path


class WallaError(Exception):
    """Base class for walla errors."""


class InputParseError(WallaError):
    """A line on stdin (or in staging) was not a single JSON value."""

    def __init__(self, message: str, *, line_no: int | None = None) -> None:
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no


class IntegrityError(WallaError):
    """An archive frame failed verification (magic, version or checksum)."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class ArchiveCollisionError(WallaError, FileExistsError):
    """An archive with the same timestamp already exists. Safe to retry later."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"archive already exists: {path}")
        self.path = Path(path)


class EncodeError(WallaError):
    """A stored number lexeme is not a valid JSON number."""


class ValueDepthError(WallaError):
    """A value is nested deeper than walla.value.MAX_DEPTH."""


class ConfigError(WallaError):
    """Invalid configuration: size string, behavior name or walla.toml."""


class StorageError(WallaError):
    """A filesystem operation failed; the OSError is chained as __cause__."""
