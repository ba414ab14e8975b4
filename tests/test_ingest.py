import math

import pytest

from grepowski.config import RunConfig
from grepowski.ingest import (
    ReadError,
    build_fragments,
    file_to_fragments,
    load_fragments,
    read_lines,
    segment_blocks,
)
from grepowski.models import Line


def _lines(n: int, file: str = "a.py") -> list[Line]:
    return [Line(file=file, number=i, text=f"line {i}") for i in range(1, n + 1)]


def _write(tmp_path, name: str, n: int):
    path = tmp_path / name
    path.write_text("".join(f"{name} {i}\n" for i in range(1, n + 1)), encoding="utf-8")
    return path


def test_read_lines_numbers_from_one_and_strips_newlines(tmp_path) -> None:
    path = tmp_path / "x.txt"
    path.write_text("first\r\nsecond\n\nfourth", encoding="utf-8")
    lines = list(read_lines(path))
    assert [line.number for line in lines] == [1, 2, 3, 4]
    assert [line.text for line in lines] == ["first", "second", "", "fourth"]
    assert all(line.file == str(path) for line in lines)


def test_read_lines_empty_file_yields_nothing(tmp_path) -> None:
    path = tmp_path / "empty.txt"
    path.write_text("", encoding="utf-8")
    assert list(read_lines(path)) == []


def test_read_lines_missing_file_raises_read_error(tmp_path) -> None:
    try:
        list(read_lines(tmp_path / "missing.txt"))
        raise AssertionError("Expected ReadError for a missing file.")
    except ReadError as exc:
        assert "missing.txt" in str(exc)


def test_read_lines_invalid_utf8_raises_read_error(tmp_path) -> None:
    path = tmp_path / "bad.bin"
    path.write_bytes(b"ok\n\xff\xfe\xfa broken\n")
    try:
        list(read_lines(path))
        raise AssertionError("Expected ReadError for invalid UTF-8.")
    except ReadError as exc:
        assert "UTF-8" in str(exc)


@pytest.mark.parametrize("total", [1, 9, 10, 11, 25, 30, 101])
@pytest.mark.parametrize("size", [1, 3, 10])
def test_segment_blocks_counts_sizes_and_reproduces_lines(total: int, size: int) -> None:
    lines = _lines(total)
    blocks = list(segment_blocks(lines, size))

    assert len(blocks) == math.ceil(total / size)
    assert all(len(block.lines) == size for block in blocks[:-1])
    assert 1 <= len(blocks[-1].lines) <= size
    assert (len(blocks[-1].lines) < size) == (total % size != 0)
    assert [line for block in blocks for line in block.lines] == lines
    for block in blocks:
        assert block.end_line - block.start_line + 1 == len(block.lines)


def test_segment_blocks_of_no_lines_is_empty() -> None:
    assert list(segment_blocks([], 10)) == []


@pytest.mark.parametrize("block_count", [1, 2, 3, 4, 7])
@pytest.mark.parametrize("size", [1, 2, 3])
def test_build_fragments_groups_blocks_greedily(block_count: int, size: int) -> None:
    blocks = list(segment_blocks(_lines(block_count * 2), 2))
    fragments = list(build_fragments(blocks, size))

    assert len(fragments) == math.ceil(block_count / size)
    assert all(len(fragment.blocks) == size for fragment in fragments[:-1])
    assert [block for fragment in fragments for block in fragment.blocks] == blocks
    assert [fragment.position for fragment in fragments] == list(range(len(fragments)))
    for prev, nxt in zip(fragments, fragments[1:]):
        assert nxt.start_line == prev.end_line + 1


def test_scenario_25_lines_10_per_block_3_per_fragment(tmp_path) -> None:
    path = _write(tmp_path, "a.txt", 25)
    blocks = list(segment_blocks(read_lines(path), 10))
    assert [len(block.lines) for block in blocks] == [10, 10, 5]

    fragments = file_to_fragments(path, lines_per_block=10, blocks_per_fragment=3)
    assert len(fragments) == 1
    assert (fragments[0].start_line, fragments[0].end_line) == (1, 25)
    assert len(fragments[0].blocks) == 3


def test_fragment_text_is_line_numbered(tmp_path) -> None:
    path = _write(tmp_path, "a.txt", 12)
    fragment = file_to_fragments(path, lines_per_block=10, blocks_per_fragment=3)[0]
    text_lines = fragment.text.split("\n")
    assert text_lines[0] == " 1: a.txt 1"
    assert text_lines[-1] == "12: a.txt 12"
    assert fragment.location == f"{path}:1"
    assert fragment.line_range == "1-12"


def test_pipeline_is_idempotent(tmp_path) -> None:
    path = _write(tmp_path, "a.txt", 47)
    first = file_to_fragments(path, lines_per_block=4, blocks_per_fragment=3)
    second = file_to_fragments(path, lines_per_block=4, blocks_per_fragment=3)
    assert [(f.start_line, f.end_line) for f in first] == [(f.start_line, f.end_line) for f in second]
    assert first == second


def test_load_fragments_keeps_file_order(tmp_path) -> None:
    a = _write(tmp_path, "a.txt", 5)
    b = _write(tmp_path, "b.txt", 5)
    config = RunConfig(model="m", lines_per_block=10, blocks_per_fragment=1)
    fragments = load_fragments([str(a), str(b)], config)
    assert [f.file for f in fragments] == [str(a), str(b)]
    assert all(len(f.blocks) == 1 and len(f.blocks[0].lines) == 5 for f in fragments)


def test_load_fragments_aborts_on_any_unreadable_file(tmp_path) -> None:
    a = _write(tmp_path, "a.txt", 5)
    config = RunConfig(model="m")
    with pytest.raises(ReadError):
        load_fragments([str(a), str(tmp_path / "nope.txt")], config)


def test_load_fragments_skips_empty_files(tmp_path) -> None:
    empty = tmp_path / "empty.txt"
    empty.write_text("", encoding="utf-8")
    a = _write(tmp_path, "a.txt", 3)
    fragments = load_fragments([str(empty), str(a)], RunConfig(model="m"))
    assert [f.file for f in fragments] == [str(a)]
