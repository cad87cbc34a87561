"""Pydantic model for sub-workflow steps."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ProcessStepConfig(BaseModel):
    workflow_file: str
    input: Optional[str] = None  # seeds the nested run; defaults to the current last output
