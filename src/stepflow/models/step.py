"""A named workflow step."""

from __future__ import annotations

from pydantic import BaseModel

from stepflow.models.step_config import StepConfig


class Step(BaseModel):
    name: str
    config: StepConfig
