"""Prompt composition helpers."""

from __future__ import annotations

from typing import Sequence

import yaml

from stepflow.chunking import Chunk
from stepflow.models.processed_input import ProcessedInput

EXAMPLE_WORKFLOW = {
    "summarize": {
        "input": "notes.txt",
        "model": "gpt-4o-mini",
        "action": "Summarize the notes.",
        "output": "STDOUT",
    },
}


def make_step_prompt(
    action: str,
    inputs: Sequence[ProcessedInput],
    *,
    memory: str = "",
    chunk: Chunk | None = None,
) -> str:
    """
    Creates a consistent prompt payload. Consistency helps prefix-caching backends.
    """
    # Keep the stable parts first; the action comes last.
    lines: list[str] = []
    if memory:
        lines.extend(["## Memory", memory.strip(), ""])

    for item in inputs:
        if item.source == "stdin":
            lines.append("## Input Content")
        else:
            lines.append(f"## Input: {item.path}")
        lines.extend([item.text.rstrip(), ""])

    if chunk is not None:
        lines.extend(
            [
                f"## Chunk {chunk.index + 1} of {chunk.total}",
                "The input above is one part of a larger document. Work on this part only.",
                "",
            ]
        )

    lines.extend(["## Action", action])
    return "\n".join(lines).rstrip() + "\n"


def make_generation_prompt(action: str, context: Sequence[ProcessedInput]) -> str:
    example = yaml.safe_dump(EXAMPLE_WORKFLOW, default_flow_style=False, sort_keys=False).rstrip()
    lines = [
        "# Workflow Generation",
        "Write a workflow document in YAML. Top-level keys are step names; each step has",
        "input, model, action and output. Use STDIN to read the previous step's output,",
        "NA for no input, STDOUT to print, and MEMORY or MEMORY:<section> to update memory.",
        "Reply with the YAML only, inside a ```yaml fenced block.",
        "",
        "## Example",
        example,
        "",
    ]
    for item in context:
        lines.extend([f"## Context: {item.path}", item.text.rstrip(), ""])
    lines.extend(["## Request", action])
    return "\n".join(lines).rstrip() + "\n"
