"""Pydantic model for a single workflow step."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stepflow.models.chunk_config import ChunkConfig
from stepflow.models.generate_step_config import GenerateStepConfig
from stepflow.models.process_step_config import ProcessStepConfig
from stepflow.normalize import normalize_optional_string_list, normalize_string_list

StepKind = Literal["standard", "generate", "process"]


class StepConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = "standard"
    # None means the document never declared an input tag.
    input: Optional[list[str]] = None
    model: list[str] = Field(default_factory=list)
    action: list[str] = Field(default_factory=list)
    output: list[str] = Field(default_factory=list)
    next_action: list[str] = Field(default_factory=list, alias="next-action")
    batch_mode: Literal["combined", "individual"] = "combined"
    skip_errors: bool = False
    memory: bool = False
    chunk: Optional[ChunkConfig] = None

    # Provider-extended fields
    instructions: str = ""
    tools: list[dict[str, Any]] = Field(default_factory=list)
    previous_response_id: str = ""
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stream: bool = False
    response_format: Optional[dict[str, Any]] = None

    generate: Optional[GenerateStepConfig] = None
    process: Optional[ProcessStepConfig] = None

    @field_validator("input", mode="before")
    @classmethod
    def _normalize_input(cls, value: Any) -> list[str] | None:
        return normalize_optional_string_list(value)

    @field_validator("model", "action", "output", "next_action", mode="before")
    @classmethod
    def _normalize_list(cls, value: Any) -> list[str]:
        return normalize_string_list(value)

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value: Any) -> Any:
        if value is None or value == "":
            return "standard"
        return value

    @property
    def kind(self) -> StepKind:
        if self.generate is not None:
            return "generate"
        if self.process is not None:
            return "process"
        return "standard"
