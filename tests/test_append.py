from __future__ import annotations

import itertools
from pathlib import Path

import pytest

import walla.archive
from walla.append import archive_staging, run_append
from walla.archive import list_archives, read_archive
from walla.errors import ArchiveCollisionError, InputParseError
from walla.jsonl import dumps
from walla.merge import ArrayBehavior, MergeSettings
from walla.read import read_merged
from walla.staging import staging_path

S1_LINES = ['{"a":1}\n', '{"b":2}\n', '{"a":3,"c":4}\n']


@pytest.fixture
def distinct_names(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every archive its own second so several rollovers fit in one test."""
    counter = itertools.count()

    def fake_filename(now: object = None) -> str:
        return f"2024-06-19-19-22-{next(counter):02d}.bin"

    monkeypatch.setattr(walla.archive, "archive_filename", fake_filename)


def test_no_rollover_under_limit(tmp_path: Path) -> None:
    result = run_append(tmp_path, S1_LINES, staging_limit=32)
    # 8 + 8 + 14 bytes never pass 32
    assert result.lines == 3
    assert result.bytes_written == 30
    assert result.archives == []
    assert staging_path(tmp_path).read_text() == '{"a":1}\n{"b":2}\n{"a":3,"c":4}\n'


def test_rollover_after_third_line(tmp_path: Path) -> None:
    result = run_append(tmp_path, S1_LINES, staging_limit=20)

    assert len(result.archives) == 1
    assert list_archives(tmp_path) == result.archives
    assert not staging_path(tmp_path).exists()
    assert dumps(read_archive(result.archives[0])) == '{"a":3,"b":2,"c":4}'


def test_lines_are_reserialized(tmp_path: Path) -> None:
    result = run_append(tmp_path, ['{ "b" : 1 ,\t"a": [ 1.50, 2e3 ] }\n'], staging_limit=1000)
    assert staging_path(tmp_path).read_text() == '{"b":1,"a":[1.50,2e3]}\n'
    assert result.bytes_written == len('{"b":1,"a":[1.50,2e3]}\n')


def test_last_line_without_newline(tmp_path: Path) -> None:
    run_append(tmp_path, ['{"a":1}\n', '{"b":2}'], staging_limit=1000)
    assert staging_path(tmp_path).read_text() == '{"a":1}\n{"b":2}\n'


def test_parse_error_keeps_earlier_lines(tmp_path: Path) -> None:
    with pytest.raises(InputParseError, match="line 2") as info:
        run_append(tmp_path, ['{"a":1}\n', '{"a":\n', '{"b":2}\n'], staging_limit=1000)
    assert info.value.line_no == 2
    assert staging_path(tmp_path).read_text() == '{"a":1}\n'


def test_blank_line_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(InputParseError, match="line 1"):
        run_append(tmp_path, ["\n"], staging_limit=1000)
    assert not staging_path(tmp_path).exists()


def test_existing_staging_counts_toward_limit(tmp_path: Path) -> None:
    staging_path(tmp_path).write_text('{"old":true}\n' * 3)  # 39 bytes
    result = run_append(tmp_path, ['{"new":1}\n'], staging_limit=40)

    assert len(result.archives) == 1
    assert not staging_path(tmp_path).exists()
    assert dumps(read_archive(result.archives[0])) == '{"old":true,"new":1}'


def test_counter_restarts_after_rollover(tmp_path: Path, distinct_names: None) -> None:
    # every 3 lines of 8 bytes pass a 20 byte limit
    lines = [f'{{"k":{i}}}\n' for i in range(7)]
    result = run_append(tmp_path, lines, staging_limit=20)

    assert [p.name for p in result.archives] == [
        "2024-06-19-19-22-00.bin",
        "2024-06-19-19-22-01.bin",
    ]
    assert staging_path(tmp_path).read_text() == '{"k":6}\n'
    assert dumps(read_archive(result.archives[0])) == '{"k":2}'
    assert dumps(read_archive(result.archives[1])) == '{"k":5}'

    found, value = read_merged(tmp_path)
    assert found
    assert dumps(value) == '{"k":6}'


def test_collision_keeps_staging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(walla.archive, "archive_filename", lambda now=None: "2024-06-19-19-22-45.bin")
    lines = [f'{{"k":{i}}}\n' for i in range(6)]

    with pytest.raises(ArchiveCollisionError):
        run_append(tmp_path, lines, staging_limit=20)

    # first rollover succeeded, second one refused to overwrite it
    assert len(list_archives(tmp_path)) == 1
    assert staging_path(tmp_path).read_text() == '{"k":3}\n{"k":4}\n{"k":5}\n'
    assert dumps(read_merged(tmp_path)[1]) == '{"k":5}'


def test_rollover_uses_merge_settings(tmp_path: Path) -> None:
    settings = MergeSettings(array_behavior=ArrayBehavior.UNION)
    result = run_append(tmp_path, ['{"xs":[1,2]}\n', '{"xs":[2,3]}\n'], staging_limit=20, settings=settings)
    assert dumps(read_archive(result.archives[0])) == '{"xs":[1,2,3]}'


def test_creates_data_dir(tmp_path: Path) -> None:
    data_dir = tmp_path / "a" / "b"
    run_append(data_dir, ["1\n"], staging_limit=1000)
    assert staging_path(data_dir).read_text() == "1\n"


def test_empty_input(tmp_path: Path) -> None:
    result = run_append(tmp_path, [], staging_limit=1000)
    assert result.lines == 0
    assert not staging_path(tmp_path).exists()


def test_archive_staging_nothing_to_do(tmp_path: Path) -> None:
    assert archive_staging(tmp_path) is None

    staging_path(tmp_path).write_bytes(b"")
    assert archive_staging(tmp_path) is None
    assert list_archives(tmp_path) == []
    assert staging_path(tmp_path).exists()


def test_archive_staging(tmp_path: Path) -> None:
    staging_path(tmp_path).write_text('{"xs":[1]}\n{"xs":[2]}\n')
    path = archive_staging(tmp_path)
    assert path is not None
    assert dumps(read_archive(path)) == '{"xs":[1,2]}'
    assert not staging_path(tmp_path).exists()


def test_bytes_lines(tmp_path: Path) -> None:
    result = run_append(tmp_path, [b'{"a":"\xc3\xa9"}\n', b'{"b":2}'], staging_limit=1000)
    assert result.lines == 2
    assert staging_path(tmp_path).read_bytes() == b'{"a":"\xc3\xa9"}\n{"b":2}\n'


def test_invalid_utf8_line(tmp_path: Path) -> None:
    with pytest.raises(InputParseError, match="line 2: not valid UTF-8") as info:
        run_append(tmp_path, [b'{"a":1}\n', b"\xff\xfe\n", b'{"b":2}\n'], staging_limit=1000)
    assert info.value.line_no == 2
    assert staging_path(tmp_path).read_bytes() == b'{"a":1}\n'
