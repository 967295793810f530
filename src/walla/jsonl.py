"""JSON text <-> walla values.

Parsing goes through the stdlib ``json`` module with number hooks so that
every number keeps its source lexeme.  Emitting is done here because
``json.dumps`` has no way to write a pre-formatted number.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from walla.errors import EncodeError, InputParseError, ValueDepthError
from walla.value import MAX_DEPTH, Number, check_depth

if TYPE_CHECKING:
    from walla.value import Value


def _reject_constant(name: str) -> Any:
    msg = f"{name} is not valid JSON"
    raise ValueError(msg)


def loads(text: str) -> Value:
    """Parse exactly one JSON value; surrounding whitespace is allowed, anything else is not."""
    try:
        value = json.loads(
            text,
            parse_int=Number,
            parse_float=Number,
            parse_constant=_reject_constant,
        )
    except RecursionError:
        msg = f"value nested deeper than {MAX_DEPTH} levels"
        raise ValueDepthError(msg) from None
    check_depth(value)
    return value


def parse_line(line: str, line_no: int | None = None) -> Value:
    """Parse one NDJSON line. Blank lines are an error."""
    try:
        return loads(line)
    except json.JSONDecodeError as exc:
        raise InputParseError(f"invalid JSON: {exc}", line_no=line_no) from exc
    except (ValueError, ValueDepthError) as exc:
        raise InputParseError(str(exc), line_no=line_no) from exc


def _emit(value: Value, out: list[str]) -> None:
    if value is None:
        out.append("null")
    elif value is True:
        out.append("true")
    elif value is False:
        out.append("false")
    elif isinstance(value, Number):
        if not value.is_valid():
            msg = f"stored number {value.lexeme!r} is not a valid JSON number"
            raise EncodeError(msg)
        out.append(value.lexeme)
    elif isinstance(value, str):
        out.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, list):
        out.append("[")
        for i, item in enumerate(value):
            if i:
                out.append(",")
            _emit(item, out)
        out.append("]")
    elif isinstance(value, dict):
        out.append("{")
        for i, (key, item) in enumerate(value.items()):
            if i:
                out.append(",")
            out.append(json.dumps(key, ensure_ascii=False))
            out.append(":")
            _emit(item, out)
        out.append("}")
    else:
        msg = f"not a walla value: {type(value).__name__}"
        raise TypeError(msg)


def dumps(value: Value) -> str:
    """Serialize compactly: no insignificant whitespace, no trailing newline."""
    out: list[str] = []
    _emit(value, out)
    return "".join(out)
