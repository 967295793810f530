"""CBOR encoding of walla values.

Every value is a two-element array ``[tag, fields]`` where ``tag`` is the
``walla.value.Kind`` number and ``fields`` is an array of the variant's fields:

    null            [0, []]
    true            [1, [true]]
    12.50           [2, ["12.50"]]
    "hi"            [3, ["hi"]]
    [a, b]          [4, [[a', b']]]
    {"k": v}        [5, [[["k", v']]]]

Numbers travel as text and objects as a list of pairs, so neither precision
nor key order is lost.  The byte layout is the one produced by minicbor's
derived enum encoding, which keeps archives readable across implementations.
"""

from __future__ import annotations

from typing import IO, TYPE_CHECKING, Any

import cbor2

from walla.errors import ValueDepthError
from walla.value import MAX_DEPTH, Kind, Number, kind_of

if TYPE_CHECKING:
    from walla.value import Value


def to_tagged(value: Value) -> list[Any]:
    """Convert a value to the nested-list form that cbor2 serializes."""
    kind = kind_of(value)
    if kind is Kind.NULL:
        fields: list[Any] = []
    elif kind is Kind.NUMBER:
        fields = [value.lexeme]  # type: ignore[union-attr]
    elif kind is Kind.ARRAY:
        fields = [[to_tagged(v) for v in value]]  # type: ignore[union-attr]
    elif kind is Kind.OBJECT:
        fields = [[[k, to_tagged(v)] for k, v in value.items()]]  # type: ignore[union-attr]
    else:
        fields = [value]
    return [int(kind), fields]


def _malformed(what: str) -> ValueError:
    return ValueError(f"malformed CBOR value: {what}")


def from_tagged(item: Any, _depth: int = 0) -> Value:
    """Inverse of ``to_tagged``. Raises ValueError on anything it did not produce."""
    if _depth > MAX_DEPTH:
        msg = f"value nested deeper than {MAX_DEPTH} levels"
        raise ValueDepthError(msg)
    if not (isinstance(item, list) and len(item) == 2):
        raise _malformed("expected a [tag, fields] pair")
    tag, fields = item
    if isinstance(tag, bool) or not isinstance(tag, int) or not isinstance(fields, list):
        raise _malformed("expected an integer tag and a field array")
    try:
        kind = Kind(tag)
    except ValueError:
        raise _malformed(f"unknown tag {tag}") from None

    if kind is Kind.NULL:
        if fields:
            raise _malformed("null carries no fields")
        return None
    if len(fields) != 1:
        raise _malformed(f"tag {tag} expects exactly one field")
    (payload,) = fields

    if kind is Kind.BOOL:
        if not isinstance(payload, bool):
            raise _malformed("bool payload")
        return payload
    if kind is Kind.NUMBER:
        if not isinstance(payload, str):
            raise _malformed("number payload must be text")
        return Number(payload)
    if kind is Kind.STRING:
        if not isinstance(payload, str):
            raise _malformed("string payload must be text")
        return payload
    if not isinstance(payload, list):
        raise _malformed(f"tag {tag} payload must be an array")
    if kind is Kind.ARRAY:
        return [from_tagged(v, _depth + 1) for v in payload]

    obj: dict = {}
    for pair in payload:
        if not (isinstance(pair, list) and len(pair) == 2 and isinstance(pair[0], str)):
            raise _malformed("object entries must be [key, value] pairs")
        key, raw = pair
        if key in obj:
            raise _malformed(f"duplicate object key {key!r}")
        obj[key] = from_tagged(raw, _depth + 1)
    return obj


def dump(value: Value, fp: IO[bytes]) -> None:
    """Encode ``value`` onto a binary stream."""
    cbor2.dump(to_tagged(value), fp)


def dumps(value: Value) -> bytes:
    return cbor2.dumps(to_tagged(value))


def loads(data: bytes) -> Value:
    """Decode one value. Raises ValueError (or ValueDepthError) on bad input."""
    try:
        item = cbor2.loads(data)
    except RecursionError:
        msg = f"value nested deeper than {MAX_DEPTH} levels"
        raise ValueDepthError(msg) from None
    except cbor2.CBORDecodeError as exc:
        raise _malformed(str(exc) or type(exc).__name__) from exc
    return from_tagged(item)
