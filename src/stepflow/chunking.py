"""Splitting oversized inputs into overlapping chunks and recombining results."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

from stepflow.models.chunk_config import ChunkConfig


logger = logging.getLogger(__name__)

# Words and individual punctuation marks; a conservative stand-in for model tokens.
TOKEN_RE = re.compile(r"\w+|[^\w\s]")


@dataclass(frozen=True)
class Chunk:
    index: int
    total: int
    text: str


def _token_spans(text: str) -> list[tuple[int, int]]:
    return [match.span() for match in TOKEN_RE.finditer(text)]


def measure(text: str, by: str) -> int:
    """Size of text in the units chunking is configured for."""
    if by == "lines":
        return len(text.splitlines())
    if by == "bytes":
        return len(text.encode("utf-8"))
    if by == "tokens":
        return len(_token_spans(text))
    raise ValueError(f"Unknown chunk unit: {by!r}")


def needs_chunking(text: str, config: ChunkConfig | None) -> bool:
    if config is None:
        return False
    return measure(text, config.by) > config.size


Slicer = Callable[[int, int], str]
Window = tuple[int, int]


def unit_windows(unit_count: int, size: int, overlap: int) -> list[Window]:
    """Half-open [start, end) windows over unit_count units; consecutive windows share overlap units."""
    windows: list[Window] = []
    start = 0
    while start < unit_count:
        end = min(start + size, unit_count)
        windows.append((start, end))
        if end == unit_count:
            break
        start = end - overlap
    return windows


def _is_continuation_byte(data: bytes, index: int) -> bool:
    return index < len(data) and data[index] & 0xC0 == 0x80


def byte_windows(data: bytes, size: int, overlap: int) -> list[Window]:
    """
    Like unit_windows over UTF-8 bytes, but every boundary falls between
    characters. A window shrinks to keep a character whole, and only grows
    past size when a single character is wider than size.
    """
    windows: list[Window] = []
    start = 0
    while start < len(data):
        end = min(start + size, len(data))
        while end > start and _is_continuation_byte(data, end):
            end -= 1
        if end == start:
            end = start + 1
            while _is_continuation_byte(data, end):
                end += 1
        windows.append((start, end))
        if end == len(data):
            break
        next_start = end - overlap
        while next_start > start and _is_continuation_byte(data, next_start):
            next_start -= 1
        start = next_start if next_start > start else end
    return windows


def _plan_windows(text: str, config: ChunkConfig) -> tuple[list[Window], Slicer]:
    """Windows over text in the configured unit, and a function returning the text of a window."""
    if config.by == "lines":
        lines = text.splitlines(keepends=True)
        windows = unit_windows(len(lines), config.size, config.overlap)
        return windows, lambda start, end: "".join(lines[start:end])
    if config.by == "bytes":
        data = text.encode("utf-8")
        return byte_windows(data, config.size, config.overlap), lambda start, end: data[start:end].decode("utf-8")
    if config.by == "tokens":
        spans = _token_spans(text)

        def slice_tokens(start: int, end: int) -> str:
            text_start = 0 if start == 0 else spans[start][0]
            text_end = len(text) if end >= len(spans) else spans[end][0]
            return text[text_start:text_end]

        return unit_windows(len(spans), config.size, config.overlap), slice_tokens
    raise ValueError(f"Unknown chunk unit: {config.by!r}")


class ChunkSet:
    """
    Ordered chunks of one input. Iterating consumes the set; chunk text is
    only sliced out of the source when reached.
    """

    def __init__(self, text: str, config: ChunkConfig) -> None:
        self.config = config
        windows, self._slicer = _plan_windows(text, config)
        self.available = len(windows)
        if config.max_chunks and len(windows) > config.max_chunks:
            windows = windows[: config.max_chunks]
        self._windows = windows
        self._iterator = self._generate()

    @property
    def total(self) -> int:
        return len(self._windows)

    @property
    def truncated(self) -> bool:
        return self.available > self.total

    @property
    def dropped(self) -> int:
        return self.available - self.total

    def _generate(self) -> Iterator[Chunk]:
        total = len(self._windows)
        for index, (start, end) in enumerate(self._windows):
            yield Chunk(index=index, total=total, text=self._slicer(start, end))

    def __iter__(self) -> Iterator[Chunk]:
        return self._iterator

    def __len__(self) -> int:
        return self.total


def split_into_chunks(text: str, config: ChunkConfig) -> ChunkSet:
    chunks = ChunkSet(text, config)
    logger.debug(
        "Split input into %d chunks by %s (size=%d, overlap=%d)",
        chunks.total,
        config.by,
        config.size,
        config.overlap,
    )
    if chunks.truncated:
        logger.warning(
            "Input needs %d chunks but max_chunks is %d; dropping the last %d",
            chunks.available,
            config.max_chunks,
            chunks.dropped,
        )
    return chunks


def combine_chunk_results(results: Sequence[str], separator: str = "\n\n") -> str:
    """Join per-chunk results in chunk order."""
    return separator.join(results)
