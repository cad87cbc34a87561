"""Input adaptors for steps."""

from __future__ import annotations

from pathlib import Path

from stepflow.dependency_resolver import STDIN
from stepflow.io_utils import load_input_file
from stepflow.models.processed_input import ProcessedInput


class InputAdaptor:
    def load(self) -> ProcessedInput:
        raise NotImplementedError("InputAdaptor.load must be implemented by subclasses.")


class FileInput(InputAdaptor):
    def __init__(self, path: Path) -> None:
        self._processed = load_input_file(path)

    def load(self) -> ProcessedInput:
        return self._processed


class TextInput(InputAdaptor):
    """Text handed over in memory: piped stdin or a previous step's output."""

    def __init__(self, text: str, label: str = STDIN) -> None:
        self._text = text
        self._label = label

    def load(self) -> ProcessedInput:
        return ProcessedInput(path=self._label, source="stdin", text=self._text)
