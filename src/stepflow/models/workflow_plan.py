"""Normalized, immutable form of a workflow document."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union

from stepflow.models.step import Step
from stepflow.models.step_config import StepConfig


@dataclass(frozen=True)
class ParallelGroup:
    key: str
    steps: tuple[Step, ...]


PlanEntry = Union[Step, ParallelGroup]


@dataclass(frozen=True)
class WorkflowPlan:
    """
    Entries keep declaration order. A ParallelGroup sits at the position its
    key was declared and runs all members before the next entry starts.
    """

    entries: tuple[PlanEntry, ...]
    defer: Mapping[str, StepConfig] = field(default_factory=lambda: MappingProxyType({}))
    source: Path | None = None

    @property
    def parallel_steps(self) -> dict[str, list[Step]]:
        return {
            entry.key: list(entry.steps) for entry in self.entries if isinstance(entry, ParallelGroup)
        }

    def all_steps(self) -> list[Step]:
        """Every step in declaration order, group members inline, deferred steps last."""
        out: list[Step] = []
        for entry in self.entries:
            if isinstance(entry, ParallelGroup):
                out.extend(entry.steps)
            else:
                out.append(entry)
        out.extend(Step(name=name, config=config) for name, config in self.defer.items())
        return out

    @property
    def base_dir(self) -> Path:
        if self.source is None:
            return Path.cwd()
        return self.source.parent
