"""Line reading, block segmentation and fragment building."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import TypeVar

from grepowski.config import RunConfig
from grepowski.models import Block, Fragment, Line

log = logging.getLogger(__name__)

T = TypeVar("T")


class ReadError(RuntimeError):
    """Raised when an input file is missing, unreadable or not valid UTF-8."""


def read_lines(path: str | Path) -> Iterator[Line]:
    """Lazily yield every physical line of ``path`` as a numbered Line.

    Line terminators are stripped; a trailing newline does not produce an
    extra empty line. Errors surface on first iteration as ReadError.
    """
    file = str(path)
    try:
        with open(path, encoding="utf-8", newline=None) as handle:
            for number, raw in enumerate(handle, start=1):
                yield Line(file=file, number=number, text=raw.rstrip("\n"))
    except UnicodeDecodeError as exc:
        raise ReadError(f"File is not valid UTF-8 text: {file} ({exc.reason})") from exc
    except OSError as exc:
        raise ReadError(f"Cannot read file: {file} ({exc.strerror or exc})") from exc


def iter_sources(paths: Sequence[str | Path]) -> Iterator[tuple[str, Iterator[Line]]]:
    """One lazy line sequence per path, in the order given."""
    for path in paths:
        yield str(path), read_lines(path)


def _groups(items: Iterable[T], size: int) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError(f"Group size must be >= 1, got {size}.")
    group: list[T] = []
    for item in items:
        group.append(item)
        if len(group) == size:
            yield group
            group = []
    if group:
        yield group


def segment_blocks(lines: Iterable[Line], lines_per_block: int) -> Iterator[Block]:
    """Greedily group consecutive lines of one file into blocks.

    Every block holds ``lines_per_block`` lines except possibly the last.
    """
    for group in _groups(lines, lines_per_block):
        yield Block(
            file=group[0].file,
            start_line=group[0].number,
            end_line=group[-1].number,
            lines=tuple(group),
        )


def build_fragments(blocks: Iterable[Block], blocks_per_fragment: int) -> Iterator[Fragment]:
    """Greedily group consecutive blocks of one file into fragments."""
    for position, group in enumerate(_groups(blocks, blocks_per_fragment)):
        yield Fragment(
            file=group[0].file,
            position=position,
            start_line=group[0].start_line,
            end_line=group[-1].end_line,
            blocks=tuple(group),
        )


def file_to_fragments(
    path: str | Path,
    lines_per_block: int,
    blocks_per_fragment: int,
) -> list[Fragment]:
    blocks = segment_blocks(read_lines(path), lines_per_block)
    return list(build_fragments(blocks, blocks_per_fragment))


def load_fragments(paths: Sequence[str | Path], config: RunConfig) -> list[Fragment]:
    """Fragments for all files in canonical order: file order, then position.

    Any ReadError aborts the whole load.
    """
    if not paths:
        raise ReadError("No input files were given.")

    fragments: list[Fragment] = []
    for file, lines in iter_sources(paths):
        blocks = segment_blocks(lines, config.lines_per_block)
        file_fragments = list(build_fragments(blocks, config.blocks_per_fragment))
        if not file_fragments:
            log.warning("File %s is empty; no fragments produced.", file)
        log.debug("File %s -> %d fragments.", file, len(file_fragments))
        fragments.extend(file_fragments)

    log.info("Prepared %d fragments from %d files.", len(fragments), len(paths))
    return fragments
