"""Workflow document parsing."""

from __future__ import annotations

import logging
import re
from collections.abc import Hashable
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import frontmatter
import yaml
from pydantic import ValidationError

from stepflow.errors import ConfigValidationError
from stepflow.models.step import Step
from stepflow.models.step_config import StepConfig
from stepflow.models.workflow_plan import ParallelGroup, PlanEntry, WorkflowPlan


logger = logging.getLogger(__name__)

DEFER_KEY = "defer"
PARALLEL_KEY_PREFIX = "parallel-"
MARKDOWN_SUFFIXES = {".md", ".markdown"}
STEP_SECTION_RE = re.compile(r"^##\s+step:([A-Za-z0-9_\-]+)\s*$", re.MULTILINE)


class UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate keys instead of keeping the last one."""

    # ids of the mapping nodes whose keys are step names
    _step_mappings: frozenset[int] = frozenset()

    def construct_document(self, node: yaml.Node) -> Any:
        self._step_mappings = frozenset(_step_mapping_ids(node))
        return super().construct_document(node)

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: set[Any] = set()
        for key_node, _value_node in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                if id(node) in self._step_mappings:
                    problem = f"step {key!r} already defined"
                else:
                    problem = f"duplicate key {key!r}"
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    problem,
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _step_mapping_ids(root: yaml.Node) -> set[int]:
    """The document mapping plus the defer and parallel-* tables under it."""
    if not isinstance(root, yaml.MappingNode):
        return set()
    ids = {id(root)}
    for key_node, value_node in root.value:
        if not isinstance(key_node, yaml.ScalarNode) or not isinstance(value_node, yaml.MappingNode):
            continue
        if key_node.value == DEFER_KEY or is_parallel_key(key_node.value):
            ids.add(id(value_node))
    return ids


def is_parallel_key(key: str) -> bool:
    return key.startswith(PARALLEL_KEY_PREFIX)


def split_step_sections(markdown_body: str) -> dict[str, str]:
    """
    Extracts blocks that begin with headings "## step:<name>".
    Returns mapping: step name -> content for that step (excluding heading line).
    """
    matches = list(STEP_SECTION_RE.finditer(markdown_body))
    out: dict[str, str] = {}
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if (i + 1) < len(matches) else len(markdown_body)
        out[m.group(1)] = markdown_body[m.end() : end].strip()
    if matches and markdown_body[: matches[0].start()].strip():
        logger.warning("Ignored text before the first step section")
    return out


def load_yaml_document(text: str) -> Any:
    try:
        return yaml.load(text, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"invalid workflow document: {exc}") from exc


def parse_workflow(text: str, *, source: Path | None = None, markdown: bool = False) -> WorkflowPlan:
    step_actions: dict[str, str] = {}
    if markdown:
        handler = frontmatter.YAMLHandler()
        if not handler.detect(text):
            raise ConfigValidationError("Markdown workflow must start with YAML front matter.")
        fm, body = handler.split(text)
        raw = load_yaml_document(fm)
        step_actions = split_step_sections(body)
    else:
        raw = load_yaml_document(text)
    return build_plan(raw, step_actions=step_actions, source=source)


def load_workflow(path: Path | str) -> WorkflowPlan:
    workflow_path = Path(path)
    try:
        text = workflow_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError(f"cannot read workflow {workflow_path}: {exc}") from exc
    return parse_workflow(
        text,
        source=workflow_path.resolve(),
        markdown=workflow_path.suffix.lower() in MARKDOWN_SUFFIXES,
    )


def _validate_step_config(name: str, raw: Any, step_actions: Mapping[str, str]) -> StepConfig:
    if not isinstance(raw, Mapping):
        raise ConfigValidationError(f"step {name!r} must be a mapping, got {type(raw).__name__}")
    data = dict(raw)
    if name in step_actions and not data.get("action"):
        data["action"] = step_actions[name]
    try:
        return StepConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigValidationError(f"invalid configuration for step {name!r}: {exc}") from exc


def build_plan(
    raw: Any,
    *,
    step_actions: Mapping[str, str] | None = None,
    source: Path | None = None,
) -> WorkflowPlan:
    """Turn a parsed document mapping into a WorkflowPlan, keeping declaration order."""
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigValidationError("workflow document must be a mapping of step names to step configs")
    actions = step_actions or {}

    entries: list[PlanEntry] = []
    defer: dict[str, StepConfig] = {}
    seen: set[str] = set()

    def claim(name: Any) -> str:
        if not isinstance(name, str) or not name:
            raise ConfigValidationError(f"step names must be non-empty strings, got {name!r}")
        if name in seen:
            raise ConfigValidationError(f"step {name!r} already defined")
        seen.add(name)
        return name

    for key, value in raw.items():
        if key == DEFER_KEY:
            if not isinstance(value, Mapping):
                raise ConfigValidationError("defer must map step names to step configs")
            for name, config in value.items():
                if not isinstance(name, str) or not name:
                    raise ConfigValidationError(f"deferred step names must be non-empty strings, got {name!r}")
                defer[name] = _validate_step_config(name, config, actions)
            continue
        if isinstance(key, str) and is_parallel_key(key):
            if not isinstance(value, Mapping) or not value:
                raise ConfigValidationError(f"parallel group {key!r} must map step names to step configs")
            members = tuple(
                Step(name=claim(name), config=_validate_step_config(name, config, actions))
                for name, config in value.items()
            )
            entries.append(ParallelGroup(key=key, steps=members))
            continue
        name = claim(key)
        entries.append(Step(name=name, config=_validate_step_config(name, value, actions)))

    return WorkflowPlan(entries=tuple(entries), defer=MappingProxyType(defer), source=source)
