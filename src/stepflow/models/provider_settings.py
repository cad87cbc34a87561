"""Pydantic model for provider and engine configuration."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field


class ProviderSettings(BaseModel):
    base_url: str = Field(default="https://api.openai.com/v1")
    api_key_env: str = Field(default="OPENAI_API_KEY")
    max_parallel: int = Field(default=4, gt=0)
    result_separator: str = "\n\n"

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        values: dict[str, str] = {}
        base_url = os.environ.get("STEPFLOW_BASE_URL")
        if base_url:
            values["base_url"] = base_url
        api_key_env = os.environ.get("STEPFLOW_API_KEY_ENV")
        if api_key_env:
            values["api_key_env"] = api_key_env
        max_parallel = os.environ.get("STEPFLOW_MAX_PARALLEL")
        if max_parallel:
            values["max_parallel"] = max_parallel
        return cls.model_validate(values)
