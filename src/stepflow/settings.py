"""Memory file discovery and initialization."""

from __future__ import annotations

import logging
import os
from pathlib import Path


logger = logging.getLogger(__name__)

MEMORY_ENV = "STEPFLOW_MEMORY"
MEMORY_FILENAME = "STEPFLOW.md"
USER_DIRNAME = ".stepflow"
PARENT_SEARCH_DEPTH = 5

MEMORY_TEMPLATE = """# Project Memory

This file is persistent memory for your workflows.
Steps read it with `memory: true` and write to it with `output: MEMORY`
or `output: MEMORY:<section>`.

## Project Context

<!-- General project information -->

## Current Status

<!-- Steps can update this section with: output: MEMORY:Current Status -->

## Key Learnings

<!-- Important insights and decisions -->

## Notes

<!-- General notes and observations -->
"""


def user_memory_path() -> Path:
    return Path.home() / USER_DIRNAME / MEMORY_FILENAME


def find_memory_path(cwd: Path | None = None) -> Path | None:
    """
    Locate the memory file. Checked in order: STEPFLOW_MEMORY, STEPFLOW.md in
    the working directory, then in up to five parent directories, then the
    user-level file. Returns None when none exists.
    """
    env_path = os.environ.get(MEMORY_ENV)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate.is_file():
            logger.debug("Using memory file from %s: %s", MEMORY_ENV, candidate)
            return candidate
        logger.info("Memory file named by %s does not exist: %s", MEMORY_ENV, candidate)

    directory = (cwd or Path.cwd()).resolve()
    candidate = directory / MEMORY_FILENAME
    if candidate.is_file():
        return candidate
    for parent in list(directory.parents)[:PARENT_SEARCH_DEPTH]:
        candidate = parent / MEMORY_FILENAME
        if candidate.is_file():
            logger.debug("Found memory file in parent directory: %s", candidate)
            return candidate

    candidate = user_memory_path()
    if candidate.is_file():
        return candidate
    logger.debug("No memory file found")
    return None


def initialize_user_memory_file() -> Path:
    """Create the user-level memory file from the template unless it exists."""
    path = user_memory_path()
    if path.is_file():
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(MEMORY_TEMPLATE, encoding="utf-8")
    return path
