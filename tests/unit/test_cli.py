"""Unit tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import (
    CALENDAR_TOOLS,
    TASK_DB_ID,
    TASK_TOOLS,
    FakeCapabilityProvider,
    FakeClock,
    ScriptedLLM,
)

from chat_workflow_orchestrator import cli
from chat_workflow_orchestrator.core.config import OrchestratorConfig
from chat_workflow_orchestrator.core.orchestrator import Orchestrator
from chat_workflow_orchestrator.workflows.calendar import CALENDAR_CAPABILITY
from chat_workflow_orchestrator.workflows.tasks import TASK_CAPABILITY


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, llm: ScriptedLLM, clock: FakeClock):
    """Run the CLI against fake collaborators and a temporary state directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ORCHESTRATOR_STATE_STORAGE_PATH", str(tmp_path / ".state"))
    monkeypatch.setenv("ORCHESTRATOR_CAPABILITY_TASK_DB_ID", TASK_DB_ID)
    monkeypatch.setattr(OrchestratorConfig, "setup_logging", lambda self: None)

    created: list[Orchestrator] = []

    def factory(config: OrchestratorConfig) -> Orchestrator:
        orch = Orchestrator(
            config,
            llm=llm,
            capabilities={
                TASK_CAPABILITY: FakeCapabilityProvider(TASK_TOOLS),
                CALENDAR_CAPABILITY: FakeCapabilityProvider(CALENDAR_TOOLS),
            },
            clock=clock,
        )
        created.append(orch)
        return orch

    monkeypatch.setattr(cli, "Orchestrator", factory)
    return created


def test_send_prints_reply(cli_env, llm: ScriptedLLM, capsys) -> None:
    llm.queue({"tool": "queryDatabase", "parameters": {}})

    code = cli.main(["send", "タスク一覧"])

    assert code == cli.EXIT_OK
    assert capsys.readouterr().out.strip() == "Operation completed: {}"
    assert llm.closed


def test_send_json_output(cli_env, llm: ScriptedLLM, capsys) -> None:
    llm.queue({"tool": "queryDatabase", "parameters": {}})

    code = cli.main(["send", "タスク一覧", "--user", "alice", "--json"])

    assert code == cli.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["success"] is True
    assert payload["data"]["workflow_id"] == "notion-task"


def test_send_without_match(cli_env, capsys) -> None:
    code = cli.main(["send", "hello"])

    assert code == cli.EXIT_NOT_HANDLED
    assert "No workflow matched" in capsys.readouterr().out


def test_send_failed_turn(cli_env, llm: ScriptedLLM, capsys) -> None:
    llm.queue("not json")

    code = cli.main(["send", "タスク一覧"])

    assert code == cli.EXIT_FAILED
    assert "rephrase" in capsys.readouterr().out


def test_sweep_state(cli_env, capsys) -> None:
    assert cli.main(["sweep-state"]) == cli.EXIT_OK
    assert capsys.readouterr().out.strip() == "Removed 0 expired states"


def test_dispatch_reminders(cli_env, capsys) -> None:
    assert cli.main(["dispatch-reminders"]) == cli.EXIT_OK
    assert capsys.readouterr().out.strip() == "Sent 0 reminders"


def test_dispatch_reminders_disabled(cli_env, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("ORCHESTRATOR_REMINDER_ENABLED", "false")

    assert cli.main(["dispatch-reminders"]) == cli.EXIT_OK
    assert capsys.readouterr().out.strip() == "Reminders are disabled"


def test_list_workflows(cli_env, capsys) -> None:
    assert cli.main(["list-workflows"]) == cli.EXIT_OK

    lines = capsys.readouterr().out.splitlines()
    assert [line.split("\t")[0] for line in lines] == ["notion-task", "calendar"]


def test_configuration_error(cli_env, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("ORCHESTRATOR_LOG_FORMAT", "xml")

    assert cli.main(["list-workflows"]) == cli.EXIT_CONFIG
    assert "Configuration error" in capsys.readouterr().err


def test_unexpected_error_returns_error_code(cli_env, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(config: OrchestratorConfig) -> Orchestrator:
        raise RuntimeError("boom")

    monkeypatch.setattr(cli, "Orchestrator", broken)

    assert cli.main(["sweep-state"]) == cli.EXIT_ERROR


def test_command_is_required() -> None:
    with pytest.raises(SystemExit):
        cli.main([])


def test_serve_runs_uvicorn(cli_env, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    app = object()
    monkeypatch.setattr(cli, "create_app", lambda config: app)
    monkeypatch.setattr(
        cli.uvicorn, "run", lambda target, **kwargs: calls.append({"app": target, **kwargs})
    )

    assert cli.main(["serve", "--port", "9001"]) == cli.EXIT_OK
    assert calls == [{"app": app, "host": "127.0.0.1", "port": 9001, "log_config": None}]
