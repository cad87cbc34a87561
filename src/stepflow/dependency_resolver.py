"""Plan validation: required fields, input resolution and forward references."""

from __future__ import annotations

import glob
import logging
from pathlib import Path
from urllib.parse import urlparse

from stepflow.errors import ConfigValidationError, DependencyError
from stepflow.models.step import Step
from stepflow.models.step_config import StepConfig
from stepflow.models.workflow_plan import ParallelGroup, WorkflowPlan


logger = logging.getLogger(__name__)

NO_INPUT = "NA"
STDIN = "STDIN"
STDOUT = "STDOUT"
MEMORY = "MEMORY"
GLOB_CHARS = set("*?[")


def is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_no_input(value: str) -> bool:
    return value == "" or value == NO_INPUT


def is_glob(value: str) -> bool:
    return any(ch in GLOB_CHARS for ch in value)


def is_memory_target(value: str) -> bool:
    return value == MEMORY or value.startswith(MEMORY + ":")


def memory_section(value: str) -> str | None:
    """Section name of a MEMORY:<section> target, None for the whole document."""
    if not value.startswith(MEMORY + ":"):
        return None
    section = value[len(MEMORY) + 1 :].strip()
    return section or None


def is_file_target(value: str) -> bool:
    return bool(value) and value != STDOUT and not is_memory_target(value)


def resolve_path(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def validate_step_config(name: str, config: StepConfig) -> None:
    """Check the fields a step of its kind cannot run without."""
    if config.type not in ("standard", config.kind):
        raise ConfigValidationError(
            f"step {name!r} has type {config.type!r} but is configured as a {config.kind} step"
        )
    if config.kind == "generate":
        generate = config.generate
        if generate is None or not generate.model:
            raise ConfigValidationError(f"model is required for generate step {name!r}")
        return
    if config.kind == "process":
        return

    if config.input is None:
        raise ConfigValidationError(f"input tag is required for step {name!r}")
    if not any(config.model):
        raise ConfigValidationError(f"model is required for step {name!r}")
    if not any(config.action):
        raise ConfigValidationError(f"action is required for step {name!r}")
    if not any(config.output):
        raise ConfigValidationError(f"output is required for step {name!r}")


class DependencyResolver:
    """
    Validates a WorkflowPlan before anything runs.

    An input is resolvable when it is a sentinel (NA, STDIN, empty), a URL,
    exists on disk, or exactly matches the output of another step in the
    plan. Only the existence check is relaxed for outputs; execution order
    stays the declaration order.
    """

    def __init__(self, plan: WorkflowPlan, base_dir: Path | None = None) -> None:
        self.plan = plan
        self.base_dir = base_dir if base_dir is not None else plan.base_dir
        self._producers = self._collect_producers()

    def _collect_producers(self) -> dict[str, list[str]]:
        """Output path -> names of every step declaring it, in declaration order."""
        producers: dict[str, list[str]] = {}
        for step in self.plan.all_steps():
            for target in self._file_outputs(step.config):
                producers.setdefault(target, []).append(step.name)
        return producers

    @staticmethod
    def _file_outputs(config: StepConfig) -> list[str]:
        targets = [target for target in config.output if is_file_target(target)]
        if config.generate is not None:
            targets.append(config.generate.output)
        return targets

    def validate(self) -> None:
        for step in self.plan.all_steps():
            validate_step_config(step.name, step.config)
            self.validate_inputs(step)
        for entry in self.plan.entries:
            if isinstance(entry, ParallelGroup):
                self.validate_parallel_group(entry)

    def validate_inputs(self, step: Step) -> None:
        for value in step.config.input or []:
            self._check_input(step.name, value)

    def _check_input(self, step_name: str, value: str) -> None:
        if is_no_input(value) or value == STDIN or is_url(value):
            return
        producers = [name for name in self._producers.get(value, []) if name != step_name]
        if producers:
            if not resolve_path(value, self.base_dir).exists():
                logger.debug("Step %s reads %s, produced by step %s", step_name, value, producers[0])
            return
        if is_glob(value):
            if glob.glob(str(resolve_path(value, self.base_dir))):
                return
            raise DependencyError(f"input pattern {value!r} for step {step_name!r} matches no files")
        if resolve_path(value, self.base_dir).exists():
            return
        raise DependencyError(
            f"input file {value!r} for step {step_name!r} does not exist and is not produced by any other step"
        )

    def validate_parallel_group(self, group: ParallelGroup) -> None:
        for consumer in group.steps:
            inputs = set(consumer.config.input or [])
            for producer in group.steps:
                if producer.name == consumer.name:
                    continue
                shared = inputs.intersection(self._file_outputs(producer.config))
                if shared:
                    raise ConfigValidationError(
                        f"parallel steps {consumer.name!r} and {producer.name!r} in {group.key!r} "
                        f"are dependent through {sorted(shared)}"
                    )
