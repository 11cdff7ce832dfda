"""Unit tests for LLM-mediated tool selection."""

from __future__ import annotations

import pytest
from conftest import ScriptedLLM

from chat_workflow_orchestrator.capabilities.provider import ToolDescriptor
from chat_workflow_orchestrator.llm.tool_selector import ToolSelector, build_selection_prompt
from chat_workflow_orchestrator.workflows.errors import (
    JSONParseFailed,
    NoToolsAvailable,
    RawPatternDetected,
    SelectionParseError,
)

TOOLS = [
    ToolDescriptor(
        name="queryDatabase",
        description="Search tasks",
        parameters={"database_id": "string, required"},
    ),
    ToolDescriptor(name="createPage", description="Create a task"),
]


def test_prompt_is_deterministic_and_embeds_inputs() -> None:
    first = build_selection_prompt("タスク一覧", TOOLS, "Today is 2026-10-19.", "Task database")
    second = build_selection_prompt("タスク一覧", TOOLS, "Today is 2026-10-19.", "Task database")

    assert first == second
    assert 'User request: "タスク一覧"' in first
    assert "Today is 2026-10-19." in first
    assert "- queryDatabase: Search tasks" in first
    assert "    - database_id: string, required" in first
    assert "literal values" in first


def test_prompt_omits_optional_sections() -> None:
    prompt = build_selection_prompt("hello", TOOLS)

    assert "Context:" not in prompt
    assert "Service:" not in prompt


@pytest.mark.asyncio
async def test_select_parses_json_at_low_temperature() -> None:
    llm = ScriptedLLM(
        {"tool": "queryDatabase", "parameters": {"database_id": "db-1"}, "reasoning": "list"}
    )
    selector = ToolSelector(llm, temperature=0.1)

    selection = await selector.select("タスク一覧", TOOLS)

    assert selection.tool == "queryDatabase"
    assert selection.parameters == {"database_id": "db-1"}
    assert selection.reasoning == "list"
    assert selection.fallback is False
    assert llm.calls[0]["json_mode"] is True
    assert llm.calls[0]["temperature"] == 0.1


@pytest.mark.asyncio
async def test_unknown_tool_falls_back_to_first_tool() -> None:
    llm = ScriptedLLM({"tool": "dropDatabase", "parameters": {}, "reasoning": "oops"})

    selection = await ToolSelector(llm).select("タスク一覧", TOOLS)

    assert selection.tool == "queryDatabase"
    assert selection.fallback is True
    assert "dropDatabase" in (selection.reasoning or "")
    assert (selection.reasoning or "").endswith("oops")


@pytest.mark.asyncio
async def test_code_fenced_json_is_accepted() -> None:
    llm = ScriptedLLM('```json\n{"tool": "createPage", "parameters": {}}\n```')

    selection = await ToolSelector(llm).select("タスク追加", TOOLS)

    assert selection.tool == "createPage"


@pytest.mark.asyncio
async def test_invalid_json_raises_parse_error() -> None:
    llm = ScriptedLLM("I think you want queryDatabase")

    with pytest.raises(JSONParseFailed) as excinfo:
        await ToolSelector(llm).select("タスク一覧", TOOLS)

    assert isinstance(excinfo.value, SelectionParseError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    ['["queryDatabase"]', '{"parameters": {}}', '{"tool": "createPage", "parameters": "x"}'],
)
async def test_malformed_selection_raises(content: str) -> None:
    with pytest.raises(SelectionParseError):
        await ToolSelector(ScriptedLLM(content)).select("タスク一覧", TOOLS)


@pytest.mark.asyncio
async def test_raw_scan_runs_before_json_parsing() -> None:
    # Not valid JSON once the call is embedded without quotes.
    llm = ScriptedLLM('{"tool": "queryDatabase", "parameters": {"database_id": taskDbId()}}')

    with pytest.raises(RawPatternDetected) as excinfo:
        await ToolSelector(llm).select("タスク一覧", TOOLS)

    assert excinfo.value.pattern == "taskDbId()"


@pytest.mark.asyncio
async def test_no_tools_raises_without_calling_llm() -> None:
    llm = ScriptedLLM()

    with pytest.raises(NoToolsAvailable):
        await ToolSelector(llm).select("タスク一覧", [])

    assert llm.calls == []
