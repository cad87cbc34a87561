import logging
from pathlib import Path

import pytest

from stepflow.errors import ConfigValidationError
from stepflow.models.step import Step
from stepflow.models.workflow_plan import ParallelGroup
from stepflow.workflow_loader import load_workflow
from stepflow.workflow_loader import parse_workflow
from stepflow.workflow_loader import split_step_sections


def test_parse_workflow_keeps_declaration_order() -> None:
    text = """
zeta:
  input: NA
  model: m
  action: first
  output: STDOUT
alpha:
  input: STDIN
  model: m
  action: second
  output: STDOUT
middle:
  input: STDIN
  model: m
  action: third
  output: STDOUT
"""
    plan = parse_workflow(text)

    assert [step.name for step in plan.entries] == ["zeta", "alpha", "middle"]
    assert plan.defer == {}
    assert plan.parallel_steps == {}


def test_parse_workflow_reads_defer_table() -> None:
    text = """
router:
  input: NA
  model: m
  action: route
  output: STDOUT
defer:
  billing:
    input: STDIN
    model: m
    action: handle billing
    output: STDOUT
"""
    plan = parse_workflow(text)

    assert [step.name for step in plan.entries] == ["router"]
    assert list(plan.defer) == ["billing"]
    assert plan.defer["billing"].action == ["handle billing"]
    assert [step.name for step in plan.all_steps()] == ["router", "billing"]


def test_duplicate_defer_names_are_rejected() -> None:
    text = """
router:
  input: NA
  model: m
  action: route
  output: STDOUT
defer:
  billing:
    input: STDIN
    model: m
    action: one
    output: STDOUT
  billing:
    input: STDIN
    model: m
    action: two
    output: STDOUT
"""
    with pytest.raises(ConfigValidationError, match="already defined"):
        parse_workflow(text)


def test_duplicate_top_level_names_are_rejected() -> None:
    text = """
step:
  input: NA
  model: m
  action: one
  output: STDOUT
step:
  input: NA
  model: m
  action: two
  output: STDOUT
"""
    with pytest.raises(ConfigValidationError, match="already defined"):
        parse_workflow(text)


def test_parallel_member_may_not_reuse_a_step_name() -> None:
    text = """
fetch:
  input: NA
  model: m
  action: one
  output: STDOUT
parallel-process:
  fetch:
    input: NA
    model: m
    action: two
    output: STDOUT
"""
    with pytest.raises(ConfigValidationError, match="already defined"):
        parse_workflow(text)


def test_duplicate_setting_inside_a_step_is_reported_as_duplicate_key() -> None:
    text = """
split:
  input: big.txt
  model: m
  action: summarize
  output: STDOUT
  chunk:
    by: lines
    size: 10
    size: 20
"""
    with pytest.raises(ConfigValidationError, match="duplicate key 'size'") as excinfo:
        parse_workflow(text)
    assert "already defined" not in str(excinfo.value)


def test_parallel_group_sits_at_declaration_position() -> None:
    text = """
prepare:
  input: NA
  model: m
  action: prepare
  output: STDOUT
parallel-process:
  left:
    input: NA
    model: m
    action: left
    output: STDOUT
  right:
    input: NA
    model: m
    action: right
    output: STDOUT
finish:
  input: STDIN
  model: m
  action: finish
  output: STDOUT
"""
    plan = parse_workflow(text)

    assert isinstance(plan.entries[0], Step)
    assert isinstance(plan.entries[1], ParallelGroup)
    assert isinstance(plan.entries[2], Step)
    assert [step.name for step in plan.entries[1].steps] == ["left", "right"]
    assert list(plan.parallel_steps) == ["parallel-process"]
    assert [step.name for step in plan.all_steps()] == ["prepare", "left", "right", "finish"]


def test_chunk_overlap_not_smaller_than_size_is_rejected() -> None:
    text = """
big:
  input: NA
  model: m
  action: summarize
  output: STDOUT
  chunk:
    by: lines
    size: 10
    overlap: 10
"""
    with pytest.raises(ConfigValidationError, match="invalid configuration for step 'big'"):
        parse_workflow(text)


def test_step_config_must_be_a_mapping() -> None:
    with pytest.raises(ConfigValidationError, match="must be a mapping"):
        parse_workflow("broken: just a string\n")


def test_document_must_be_a_mapping() -> None:
    with pytest.raises(ConfigValidationError, match="must be a mapping"):
        parse_workflow("- one\n- two\n")


def test_invalid_yaml_is_a_config_error() -> None:
    with pytest.raises(ConfigValidationError, match="invalid workflow document"):
        parse_workflow("step: [unclosed\n")


def test_split_step_sections_warns_on_preamble(caplog: pytest.LogCaptureFixture) -> None:
    body = "intro text\n\n## step:one\nDo the first thing.\n\n## step:two\nDo the second thing.\n"

    with caplog.at_level(logging.WARNING):
        sections = split_step_sections(body)

    assert sections == {"one": "Do the first thing.", "two": "Do the second thing."}
    assert "Ignored text before the first step section" in caplog.text


def test_load_markdown_workflow_takes_actions_from_sections(tmp_path: Path) -> None:
    path = tmp_path / "flow.md"
    path.write_text(
        "---\n"
        "summarize:\n"
        "  input: NA\n"
        "  model: m\n"
        "  output: STDOUT\n"
        "review:\n"
        "  input: STDIN\n"
        "  model: m\n"
        "  action: keep this action\n"
        "  output: STDOUT\n"
        "---\n"
        "\n"
        "## step:summarize\n"
        "Summarize the project.\n"
        "\n"
        "## step:review\n"
        "Ignored because the step has an action.\n",
        encoding="utf-8",
    )

    plan = load_workflow(path)

    assert plan.source == path.resolve()
    assert plan.base_dir == tmp_path.resolve()
    assert plan.entries[0].config.action == ["Summarize the project."]
    assert plan.entries[1].config.action == ["keep this action"]


def test_markdown_workflow_requires_front_matter() -> None:
    with pytest.raises(ConfigValidationError, match="front matter"):
        parse_workflow("# Just a heading\n", markdown=True)


def test_load_workflow_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigValidationError, match="cannot read workflow"):
        load_workflow(tmp_path / "missing.yaml")
