"""Append-and-compact store for JSON documents.

Layout:
    <data_dir>/
        walla.toml                  # optional config
        staging.jsonl               # append-only NDJSON, one compact value per line
        archived/
            YYYY-MM-DD-HH-MM-SS.bin # checksummed CBOR, one per rollover

Every value written is merged, oldest first, into a single document:
archives in filename order, then the staging lines in file order.

Single writer per data directory.  Archives are created with O_EXCL and
never rewritten; staging is unlinked only after its archive is complete.
"""

from walla.config import WallaConfig, load_config
from walla.merge import ArrayBehavior, MergeSettings, NullBehavior
from walla.value import Number

__all__ = [
    "ArrayBehavior",
    "MergeSettings",
    "NullBehavior",
    "Number",
    "WallaConfig",
    "load_config",
]
