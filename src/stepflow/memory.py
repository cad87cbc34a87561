"""Persistent, section-structured memory document."""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path

from stepflow.concurrency import ReadWriteLock
from stepflow.errors import MemoryStoreError


logger = logging.getLogger(__name__)

TIMESTAMP_ENV = "STEPFLOW_TIMESTAMP"
MEMORY_TITLE = "# Project Memory"
SECTION_PREFIX = "## "
UPDATED_LINE_RE = re.compile(r"^\*Updated: .*\*\s*$")


def current_timestamp() -> str:
    override = os.environ.get(TIMESTAMP_ENV)
    if override:
        return override
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _is_header(line: str, header: str) -> bool:
    return line.rstrip() == header


def _find_section(lines: list[str], header: str) -> tuple[int, int] | None:
    """Line range [start, end) of the first section with header; end is the next header or EOF."""
    for start, line in enumerate(lines):
        if not _is_header(line, header):
            continue
        end = start + 1
        while end < len(lines) and not lines[end].startswith(SECTION_PREFIX):
            end += 1
        return start, end
    return None


class MemoryManager:
    """
    Owns one memory document. Reads take a shared lock, writes an exclusive
    one, and every write persists the whole document before releasing it.
    """

    def __init__(self, path: Path | str | None) -> None:
        self._path = Path(path) if path else None
        self._content = ""
        self._lock = ReadWriteLock()
        if self._path is not None:
            self.load()

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def has_memory(self) -> bool:
        return self._path is not None

    def load(self) -> None:
        with self._lock.write():
            if self._path is None:
                self._content = ""
                return
            try:
                self._content = self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                self._content = ""
            except OSError as exc:
                raise MemoryStoreError(f"failed to load memory file {self._path}: {exc}") from exc

    def read(self) -> str:
        with self._lock.read():
            return self._content

    def read_section(self, name: str) -> str:
        with self._lock.read():
            if not self._content:
                return ""
            lines = self._content.split("\n")
            found = _find_section(lines, SECTION_PREFIX + name)
            if found is None:
                return ""
            start, end = found
            body = lines[start + 1 : end]
            if body and UPDATED_LINE_RE.match(body[0]):
                body = body[1:]
            return "\n".join(body).strip()

    def append(self, content: str) -> None:
        with self._lock.write():
            self._require_path()
            separator = f"\n---\n*Updated: {current_timestamp()}*\n\n"
            self._persist(self._content + separator + content)

    def write_section(self, name: str, content: str) -> None:
        with self._lock.write():
            self._require_path()
            header = SECTION_PREFIX + name
            block = [header, f"*Updated: {current_timestamp()}*", "", content]
            if not self._content.strip():
                self._persist("\n".join([MEMORY_TITLE, "", *block]))
                return
            lines = self._content.split("\n")
            found = _find_section(lines, header)
            if found is None:
                self._persist("\n".join([*lines, "", *block]))
                return
            start, end = found
            tail = ["", *lines[end:]] if end < len(lines) else []
            self._persist("\n".join([*lines[:start], *block, *tail]))

    def _require_path(self) -> Path:
        if self._path is None:
            raise MemoryStoreError("no memory file configured")
        return self._path

    def _persist(self, content: str) -> None:
        # Caller holds the write lock.
        path = self._require_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise MemoryStoreError(f"failed to write memory file {path}: {exc}") from exc
        self._content = content
        logger.debug("Persisted memory file %s (%d bytes)", path, len(content))
