"""Pydantic model for a deferred-step dispatch directive."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel


class DispatchPayload(BaseModel):
    step: str
    input: Any = ""

    @property
    def input_text(self) -> str:
        if isinstance(self.input, str):
            return self.input
        return json.dumps(self.input)
