"""Input/output helpers."""

from __future__ import annotations

import glob
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import httpx

from stepflow.errors import DependencyError
from stepflow.models.processed_input import ProcessedInput

SUPPORTED_EXTENSIONS = frozenset(
    {
        ".txt", ".md", ".markdown", ".rst", ".csv", ".tsv", ".json", ".jsonl", ".yaml", ".yml",
        ".xml", ".html", ".htm", ".log", ".ini", ".toml", ".cfg", ".sql", ".py", ".go", ".js",
        ".ts", ".java", ".c", ".h", ".cpp", ".hpp", ".rs", ".rb", ".sh", ".php", ".swift", ".kt",
    }
)
CONTENT_TYPE_SUFFIXES = {
    "text/html": ".html",
    "application/json": ".json",
    "text/csv": ".csv",
    "application/xml": ".xml",
    "text/xml": ".xml",
    "text/markdown": ".md",
}
FETCH_TIMEOUT_SECONDS = 30.0


def is_supported_file(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def load_input_file(path: Path) -> ProcessedInput:
    if not path.exists():
        raise DependencyError(f"input file not found: {path}")
    if not path.is_file():
        raise DependencyError(f"input path is not a file: {path}")
    if not is_supported_file(path):
        raise DependencyError(f"unsupported input file type {path.suffix!r}: {path}")
    text = path.read_text(encoding="utf-8", errors="replace")
    return ProcessedInput(path=str(path), source="file", text=text)


def expand_pattern(pattern: Path) -> list[Path]:
    matches = sorted(glob.glob(str(pattern)))
    if not matches:
        raise DependencyError(f"input pattern matches no files: {pattern}")
    return [Path(match) for match in matches if Path(match).is_file()]


def write_output(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _suffix_for(content_type: str) -> str:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return CONTENT_TYPE_SUFFIXES.get(media_type, ".txt")


@asynccontextmanager
async def fetched_url(url: str, client: httpx.AsyncClient | None = None) -> AsyncIterator[ProcessedInput]:
    """
    Download url into a temporary file and yield it as an input.
    The file is removed when the context exits.
    """
    try:
        if client is None:
            async with httpx.AsyncClient(follow_redirects=True, timeout=FETCH_TIMEOUT_SECONDS) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise DependencyError(f"failed to fetch {url}: {exc}") from exc

    fd, tmp_name = tempfile.mkstemp(prefix="stepflow-", suffix=_suffix_for(response.headers.get("content-type", "")))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(response.text)
        loaded = load_input_file(tmp_path)
        yield loaded.model_copy(update={"path": url, "source": "url"})
    finally:
        tmp_path.unlink(missing_ok=True)
