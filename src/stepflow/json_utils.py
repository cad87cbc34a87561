"""JSON and fenced-block parsing helpers for model output."""

from __future__ import annotations

import json
import re

from pydantic import ValidationError

from stepflow.models.dispatch_payload import DispatchPayload

FENCED_BLOCK_RE = re.compile(r"```(?P<lang>[A-Za-z0-9_-]*)[ \t]*\n(?P<body>.*?)```", re.DOTALL)


def extract_first_json_object(text: str) -> str:
    """
    Extract the first top-level JSON object from text.
    Models often wrap a dispatch directive in prose or code fences.
    """
    start = text.find("{")
    if start == -1:
        raise ValueError("No JSON object found in model output.")

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == "\"":
                in_string = False
            continue
        if ch == "\"":
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    raise ValueError("Unbalanced JSON object in model output.")


def parse_dispatch_payload(text: str) -> DispatchPayload | None:
    """Return the dispatch directive carried by text, or None when there is none."""
    candidate = text.strip()
    if not candidate:
        return None
    try:
        raw = json.loads(candidate)
    except ValueError:
        try:
            raw = json.loads(extract_first_json_object(candidate))
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None
    try:
        return DispatchPayload.model_validate(raw)
    except ValidationError:
        return None


def extract_fenced_block(text: str, languages: tuple[str, ...] = ("yaml", "yml")) -> str:
    """Return the body of the first fenced block in one of languages, else the stripped text."""
    for match in FENCED_BLOCK_RE.finditer(text):
        if match.group("lang").lower() in languages:
            return match.group("body").strip() + "\n"
    for match in FENCED_BLOCK_RE.finditer(text):
        if not match.group("lang"):
            return match.group("body").strip() + "\n"
    return text.strip() + "\n"
