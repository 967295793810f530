from __future__ import annotations

import pytest

from walla.errors import EncodeError, InputParseError
from walla.jsonl import dumps, loads, parse_line
from walla.value import Number, same


def test_numbers_keep_their_lexeme() -> None:
    assert loads('{"n":10000000000000001}') == {"n": Number("10000000000000001")}
    assert loads("1.50") == Number("1.50")
    assert loads("-0") == Number("-0")
    assert loads("1E+2") == Number("1E+2")
    assert dumps(loads("[1.50,1e5,-0,10000000000000001]")) == "[1.50,1e5,-0,10000000000000001]"


def test_strings_stay_strings() -> None:
    assert loads('"12"') == "12"
    assert loads('{"k":"v"}') == {"k": "v"}


def test_dumps_is_compact() -> None:
    value = loads('{ "a" : [1, 2, {"b": null}], "c": true, "d": false }')
    assert dumps(value) == '{"a":[1,2,{"b":null}],"c":true,"d":false}'


def test_dumps_preserves_key_order_and_escapes() -> None:
    value = loads('{"z":"é\\n\\"","a":[]}')
    assert list(value) == ["z", "a"]
    assert dumps(value) == '{"z":"é\\n\\"","a":[]}'
    assert dumps({}) == "{}"
    assert dumps(None) == "null"


def test_duplicate_keys_keep_first_position_last_value() -> None:
    value = loads('{"a":1,"b":2,"a":3}')
    assert list(value.items()) == [("a", Number("3")), ("b", Number("2"))]


def test_round_trip_through_text() -> None:
    text = '{"b":[true,null,{"x":"y"}],"a":-12.5e-3,"c":""}'
    assert dumps(loads(text)) == text
    assert same(loads(dumps(loads(text))), loads(text))


@pytest.mark.parametrize(
    "line",
    ["", "\n", "   \n", "{", '{"a":1} x', '{"a":1}{"b":2}', "NaN", "Infinity", "[1,]", "'a'"],
)
def test_parse_line_rejects(line: str) -> None:
    with pytest.raises(InputParseError):
        parse_line(line)


def test_parse_line_accepts_surrounding_whitespace() -> None:
    assert parse_line('  {"a":1}  \n') == {"a": Number("1")}
    assert parse_line("[]") == []


def test_parse_error_reports_line_number() -> None:
    with pytest.raises(InputParseError, match="line 7") as info:
        parse_line("oops\n", line_no=7)
    assert info.value.line_no == 7


def test_too_deep_is_a_parse_error() -> None:
    assert parse_line("[" * 128 + "]" * 128) is not None
    with pytest.raises(InputParseError, match="nested deeper"):
        parse_line("[" * 129 + "]" * 129)


def test_dumps_rejects_bad_number() -> None:
    with pytest.raises(EncodeError, match="not a valid JSON number"):
        dumps({"n": Number("01")})


def test_dumps_rejects_foreign_types() -> None:
    with pytest.raises(TypeError):
        dumps({"n": 1})
