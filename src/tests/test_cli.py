import io
import sys
from pathlib import Path
from typing import Any

import pytest

from stepflow import cli as cli_module
from stepflow.models.processed_input import ProcessedInput
from stepflow.models.prompt_options import PromptOptions
from stepflow.orchestrator import Orchestrator


class StaticGateway:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.prompts: list[str] = []

    async def send_prompt(self, model: str, prompt: str, options: PromptOptions | None = None) -> str:
        self.prompts.append(prompt)
        return self.reply

    async def send_prompt_with_file(
        self,
        model: str,
        prompt: str,
        file: ProcessedInput,
        options: PromptOptions | None = None,
    ) -> str:
        return await self.send_prompt(model, prompt, options)


class OrchestratorFactory:
    def __init__(self, gateway: StaticGateway) -> None:
        self.gateway = gateway
        self.stdout = io.StringIO()
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> Orchestrator:
        self.calls.append(kwargs)
        return Orchestrator(self.gateway, stdout=self.stdout, **kwargs)


@pytest.fixture
def factory(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> OrchestratorFactory:
    monkeypatch.delenv("STEPFLOW_MEMORY", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    factory = OrchestratorFactory(StaticGateway("done"))
    monkeypatch.setattr(cli_module, "Orchestrator", factory)
    return factory


def _workflow(tmp_path: Path, name: str, input_value: str = "STDIN") -> Path:
    path = tmp_path / name
    path.write_text(f"only:\n  input: {input_value}\n  model: m\n  action: act\n  output: STDOUT\n", encoding="utf-8")
    return path


def test_process_reads_piped_stdin(
    factory: OrchestratorFactory, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO("piped value"))
    path = _workflow(tmp_path, "flow.yaml")

    code = cli_module.main(["process", str(path)])

    assert code == 0
    assert "piped value" in factory.gateway.prompts[0]
    assert factory.stdout.getvalue() == "done\n"
    assert factory.calls == [{"memory_path": None}]


def test_process_reports_failure_and_continues(
    factory: OrchestratorFactory, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    bad = _workflow(tmp_path, "bad.yaml", input_value="missing.txt")
    good = _workflow(tmp_path, "good.yaml", input_value="NA")

    code = cli_module.main(["process", str(bad), str(good)])

    assert code == 1
    assert len(factory.gateway.prompts) == 1


def test_process_uses_memory_option(
    factory: OrchestratorFactory, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    memory_path = tmp_path / "custom.md"
    path = _workflow(tmp_path, "flow.yaml", input_value="NA")

    code = cli_module.main(["--verbose", "process", str(path), "--memory", str(memory_path)])

    assert code == 0
    assert factory.calls == [{"memory_path": memory_path}]


@pytest.mark.parametrize(
    ("flags_before", "flags_after", "verbose"),
    [
        ([], ["-v"], True),
        ([], ["--verbose"], True),
        (["--verbose"], [], True),
        ([], [], False),
    ],
)
def test_verbose_flag_works_on_either_side_of_process(
    factory: OrchestratorFactory,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    flags_before: list[str],
    flags_after: list[str],
    verbose: bool,
) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))
    levels: list[bool] = []
    monkeypatch.setattr(cli_module, "configure_logging", levels.append)
    path = _workflow(tmp_path, "flow.yaml", input_value="NA")

    code = cli_module.main([*flags_before, "process", str(path), *flags_after])

    assert code == 0
    assert levels == [verbose]


def test_memory_init_creates_user_file(
    factory: OrchestratorFactory, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli_module.main(["memory-init"])

    created = tmp_path / "home" / ".stepflow" / "STEPFLOW.md"
    assert code == 0
    assert created.is_file()
    assert "## Current Status" in created.read_text(encoding="utf-8")
    assert str(created) in capsys.readouterr().out


def test_process_requires_a_file() -> None:
    with pytest.raises(SystemExit):
        cli_module.main(["process"])
