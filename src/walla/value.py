"""The value model: JSON values as plain Python objects.

    None            null
    bool            true / false
    Number          a JSON number, kept as its source lexeme
    str             string
    list            array
    dict            object (insertion ordered, keys are str)

Numbers never go through int/float, so ``10000000000000001`` or ``1.50``
come back out exactly as they went in.  ``Number`` is not a
``str`` subclass: ``Number("1")`` and ``"1"`` are different values.

Python's ``==`` on dicts ignores key order; use ``same()`` when order matters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Union

from walla.errors import ValueDepthError

# Matches serde_json's default recursion limit.
MAX_DEPTH = 128

_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")


@dataclass(frozen=True)
class Number:
    """A JSON number stored as text."""

    lexeme: str

    def __str__(self) -> str:
        return self.lexeme

    def is_valid(self) -> bool:
        return _NUMBER_RE.fullmatch(self.lexeme) is not None


Value = Union[None, bool, Number, str, list, dict]


class Kind(IntEnum):
    """Variant tags. The numbers are part of the archive format."""

    NULL = 0
    BOOL = 1
    NUMBER = 2
    STRING = 3
    ARRAY = 4
    OBJECT = 5


def kind_of(value: Any) -> Kind:
    if value is None:
        return Kind.NULL
    # bool before anything numeric-looking
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, Number):
        return Kind.NUMBER
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, list):
        return Kind.ARRAY
    if isinstance(value, dict):
        return Kind.OBJECT
    msg = f"not a walla value: {type(value).__name__}"
    raise TypeError(msg)


def check_depth(value: Any, limit: int = MAX_DEPTH) -> None:
    """Raise ValueDepthError if arrays/objects nest deeper than ``limit``.

    Walks with an explicit stack, so it is safe on any input the parsers hand us.
    """
    stack: list[tuple[Any, int]] = [(value, 0)]
    while stack:
        item, depth = stack.pop()
        if isinstance(item, list):
            children = item
        elif isinstance(item, dict):
            children = list(item.values())
        else:
            continue
        if depth + 1 > limit:
            msg = f"value nested deeper than {limit} levels"
            raise ValueDepthError(msg)
        stack.extend((c, depth + 1) for c in children)


def freeze(value: Value) -> tuple:
    """Return a hashable, key-order-sensitive fingerprint of ``value``."""
    kind = kind_of(value)
    if kind is Kind.ARRAY:
        return (kind, tuple(freeze(v) for v in value))  # type: ignore[union-attr]
    if kind is Kind.OBJECT:
        return (kind, tuple((k, freeze(v)) for k, v in value.items()))  # type: ignore[union-attr]
    if kind is Kind.NUMBER:
        return (kind, value.lexeme)  # type: ignore[union-attr]
    return (kind, value)


def same(a: Value, b: Value) -> bool:
    """Structural equality that also compares object key order."""
    return freeze(a) == freeze(b)
