"""Merging two values, older first.

The rules, by (older, newer):

    object, object   union of keys; shared keys merge recursively, older's key
                     order is kept and newer-only keys are appended in newer's order
    array, array     decided by ArrayBehavior
    anything, null   decided by NullBehavior
    otherwise        newer wins

The operator is not commutative.  Inputs are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from itertools import zip_longest
from typing import TYPE_CHECKING

from walla.errors import ConfigError
from walla.value import freeze

if TYPE_CHECKING:
    from collections.abc import Iterable

    from walla.value import Value

_MISSING = object()


class ArrayBehavior(Enum):
    CONCAT = "concat"    # older ++ newer
    MERGE = "merge"      # merge element-wise, keep the tail of the longer one
    UNION = "union"      # older ++ newer with structural duplicates dropped
    REPLACE = "replace"  # newer

    @classmethod
    def parse(cls, name: str) -> ArrayBehavior:
        try:
            return cls(name.strip().lower())
        except ValueError:
            msg = f"'{name}' is an unknown option for merging array values"
            raise ConfigError(msg) from None


class NullBehavior(Enum):
    MERGE = "merge"    # a newer null replaces the older value
    IGNORE = "ignore"  # a newer null is skipped

    @classmethod
    def parse(cls, name: str) -> NullBehavior:
        try:
            return cls(name.strip().lower())
        except ValueError:
            msg = f"'{name}' is an unknown option for merging null values"
            raise ConfigError(msg) from None


@dataclass(frozen=True)
class MergeSettings:
    array_behavior: ArrayBehavior = ArrayBehavior.CONCAT
    null_behavior: NullBehavior = NullBehavior.MERGE

    def merge(self, older: Value, newer: Value) -> Value:
        """Merge ``newer`` on top of ``older``."""
        if isinstance(older, dict) and isinstance(newer, dict):
            return self._merge_objects(older, newer)
        if isinstance(older, list) and isinstance(newer, list):
            return self._merge_arrays(older, newer)
        if newer is None:
            return older if self.null_behavior is NullBehavior.IGNORE else None
        return newer

    def _merge_objects(self, older: dict, newer: dict) -> dict:
        result: dict = {}
        for key, old in older.items():
            new = newer.get(key, _MISSING)
            result[key] = old if new is _MISSING else self.merge(old, new)
        for key, new in newer.items():
            if key not in result:
                result[key] = new
        return result

    def _merge_arrays(self, older: list, newer: list) -> list:
        behavior = self.array_behavior
        if behavior is ArrayBehavior.CONCAT:
            return [*older, *newer]
        if behavior is ArrayBehavior.REPLACE:
            return list(newer)
        if behavior is ArrayBehavior.MERGE:
            return [
                b if a is _MISSING else a if b is _MISSING else self.merge(a, b)
                for a, b in zip_longest(older, newer, fillvalue=_MISSING)
            ]
        seen: set[tuple] = set()
        out: list = []
        for item in (*older, *newer):
            key = freeze(item)
            if key not in seen:
                seen.add(key)
                out.append(item)
        return out


def merge_all(values: Iterable[Value], settings: MergeSettings | None = None) -> tuple[bool, Value]:
    """Left-fold ``values`` oldest to newest.

    Returns ``(found, merged)``; ``found`` is False when ``values`` was empty,
    since ``None`` is itself a legitimate merged value.
    """
    settings = settings or MergeSettings()
    found = False
    accum: Value = None
    for value in values:
        accum = settings.merge(accum, value) if found else value
        found = True
    return found, accum
