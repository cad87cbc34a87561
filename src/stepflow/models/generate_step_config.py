"""Pydantic model for workflow-generating steps."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from stepflow.normalize import normalize_string_list


class GenerateStepConfig(BaseModel):
    model: list[str] = Field(default_factory=list)
    action: str
    output: str
    context_files: list[str] = Field(default_factory=list)

    @field_validator("model", "context_files", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> list[str]:
        return normalize_string_list(value)
