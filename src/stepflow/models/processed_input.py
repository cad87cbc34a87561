"""Pydantic model for a resolved step input."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class ProcessedInput(BaseModel):
    path: str
    source: Literal["file", "url", "stdin"]
    text: str
