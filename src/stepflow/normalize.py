"""Normalization of single-value-or-list config fields."""

from __future__ import annotations

from typing import Any


def normalize_string_list(value: Any) -> list[str]:
    """
    Convert a field shaped as "a string or a list of strings" into a list.

    Absent or empty values become an empty list. List elements that are not
    strings become "" so positions stay aligned with sibling fields.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [item if isinstance(item, str) else "" for item in value]
    return [""]


def normalize_optional_string_list(value: Any) -> list[str] | None:
    # None marks a field that was never declared.
    if value is None:
        return None
    return normalize_string_list(value)
