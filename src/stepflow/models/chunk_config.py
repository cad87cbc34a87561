"""Pydantic model for chunked input processing."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ChunkConfig(BaseModel):
    by: Literal["lines", "bytes", "tokens"] = "lines"
    size: int = Field(gt=0)
    overlap: int = Field(default=0, ge=0)
    max_chunks: int = Field(default=0, ge=0)  # 0 = unlimited

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkConfig":
        if self.overlap >= self.size:
            raise ValueError(f"chunk overlap ({self.overlap}) must be smaller than chunk size ({self.size})")
        return self
