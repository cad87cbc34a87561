"""Helper for running workflow documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, TextIO

import httpx

from stepflow.dependency_resolver import NO_INPUT
from stepflow.errors import MemoryStoreError
from stepflow.memory import MemoryManager
from stepflow.models.provider_settings import ProviderSettings
from stepflow.models.workflow_plan import WorkflowPlan
from stepflow.processor import WorkflowProcessor
from stepflow.providers import ProviderGateway, PydanticAIGateway
from stepflow.workflow_loader import load_workflow


logger = logging.getLogger(__name__)


@dataclass
class DocumentResult:
    path: Path
    ok: bool
    output: str = ""
    error: str | None = None


def describe_plan(plan: WorkflowPlan) -> list[str]:
    """Human-readable configuration summary, one line per entry."""
    lines: list[str] = []
    for step in plan.all_steps():
        config = step.config
        prefix = "Deferred step" if step.name in plan.defer else "Step"
        lines.append(f"{prefix}: {step.name}")
        inputs = config.input or []
        if inputs and inputs[0] != NO_INPUT:
            lines.append(f"- Input: {inputs}")
        lines.append(f"- Model: {config.model}")
        lines.append(f"- Action: {config.action}")
        lines.append(f"- Output: {config.output}")
        if config.next_action:
            lines.append(f"- Next Action: {config.next_action}")
    for key, steps in plan.parallel_steps.items():
        lines.append(f"Parallel group {key}: {[step.name for step in steps]}")
    return lines


def open_memory(path: Path | str | None) -> MemoryManager:
    """A MemoryManager for path, or one without storage if path cannot be loaded."""
    try:
        return MemoryManager(path)
    except MemoryStoreError as exc:
        logger.warning("Continuing without memory: %s", exc)
        return MemoryManager(None)


class Orchestrator:
    def __init__(
        self,
        gateway: ProviderGateway | None = None,
        *,
        memory_path: Path | str | None = None,
        settings: ProviderSettings | None = None,
        stdout: TextIO | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings: ProviderSettings = settings or ProviderSettings.from_env()
        self.gateway: ProviderGateway = gateway or PydanticAIGateway(self.settings)
        self.memory: MemoryManager = open_memory(memory_path)
        self._stdout = stdout
        self._http_client = http_client

    def processor_for(self, plan: WorkflowPlan, initial_input: str = "") -> WorkflowProcessor:
        processor = WorkflowProcessor(
            plan,
            self.gateway,
            memory=self.memory,
            settings=self.settings,
            stdout=self._stdout,
            http_client=self._http_client,
        )
        if initial_input:
            processor.set_last_output(initial_input)
        return processor

    async def run(self, path: Path | str, initial_input: str = "") -> str:
        plan = load_workflow(path)
        logger.info("Configuration for %s:\n%s", path, "\n".join(describe_plan(plan)))
        processor = self.processor_for(plan, initial_input)
        return await processor.process()

    async def run_many(self, paths: Sequence[Path | str], initial_input: str = "") -> list[DocumentResult]:
        """Run each document in turn; a failing document is logged and the rest still run."""
        results: list[DocumentResult] = []
        for path in paths:
            logger.info("Processing workflow file: %s", path)
            try:
                output = await self.run(path, initial_input)
            except Exception as exc:
                logger.error("Error processing workflow %s: %s", path, exc)
                results.append(DocumentResult(path=Path(path), ok=False, error=str(exc)))
                continue
            results.append(DocumentResult(path=Path(path), ok=True, output=output))
        return results
