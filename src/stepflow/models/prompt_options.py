"""Pydantic model for provider options forwarded with a prompt."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from stepflow.models.step_config import StepConfig


class PromptOptions(BaseModel):
    instructions: str = ""
    tools: list[dict[str, Any]] = Field(default_factory=list)
    previous_response_id: str = ""
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stream: bool = False
    response_format: Optional[dict[str, Any]] = None

    @classmethod
    def from_step_config(cls, config: StepConfig) -> "PromptOptions":
        return cls(
            instructions=config.instructions,
            tools=config.tools,
            previous_response_id=config.previous_response_id,
            max_output_tokens=config.max_output_tokens,
            temperature=config.temperature,
            top_p=config.top_p,
            stream=config.stream,
            response_format=config.response_format,
        )
