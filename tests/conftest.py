"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from chat_workflow_orchestrator.capabilities.provider import (
    CapabilityProvider,
    CapabilityResponse,
    ToolDescriptor,
)
from chat_workflow_orchestrator.core.config import (
    CapabilityConfig,
    LLMConfig,
    OrchestratorConfig,
    ReminderConfig,
    StateConfig,
)
from chat_workflow_orchestrator.llm.provider import LLMProvider, LLMResponse
from chat_workflow_orchestrator.state.backends import InMemoryStateBackend
from chat_workflow_orchestrator.state.manager import StateStore
from chat_workflow_orchestrator.workflows.executor import WorkflowExecutor
from chat_workflow_orchestrator.workflows.registry import WorkflowRegistry
from chat_workflow_orchestrator.workflows.types import IncomingMessage, WorkflowDefinition

TASK_DB_ID = "task-db-0001"
STAFF_DB_ID = "staff-db-0001"


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 10, 19, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class ScriptedLLM(LLMProvider):
    """Returns queued completions in order and records every prompt."""

    def __init__(self, *responses: str | dict[str, Any]) -> None:
        self.responses = [r if isinstance(r, str) else json.dumps(r) for r in responses]
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: str | dict[str, Any]) -> None:
        self.responses.extend(r if isinstance(r, str) else json.dumps(r) for r in responses)

    async def complete(
        self,
        prompt: str,
        *,
        system_message: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        self.calls.append(
            {
                "prompt": prompt,
                "system_message": system_message,
                "temperature": temperature,
                "json_mode": json_mode,
            }
        )
        if not self.responses:
            raise AssertionError("ScriptedLLM has no response left")
        return LLMResponse(content=self.responses.pop(0))

    async def aclose(self) -> None:
        self.closed = True


Handler = Callable[[dict[str, Any]], CapabilityResponse]


class FakeCapabilityProvider(CapabilityProvider):
    """In-memory provider: tool results are canned responses or handlers."""

    def __init__(
        self,
        tools: list[str] | list[ToolDescriptor],
        responses: dict[str, CapabilityResponse | Handler] | None = None,
        description: str = "Fake service",
    ) -> None:
        self.tools = [
            t if isinstance(t, ToolDescriptor) else ToolDescriptor(name=t, description=t)
            for t in tools
        ]
        self.responses = dict(responses or {})
        self.description = description
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def execute(self, tool: str, params: dict[str, Any]) -> CapabilityResponse:
        self.calls.append((tool, params))
        response = self.responses.get(tool)
        if response is None:
            return CapabilityResponse(success=True, data={})
        if callable(response):
            return response(params)
        return response

    async def list_tools(self) -> list[ToolDescriptor]:
        return list(self.tools)

    def describe(self) -> str:
        return self.description

    async def aclose(self) -> None:
        self.closed = True


TASK_TOOLS = [
    "queryDatabase",
    "createPage",
    "updatePage",
    "deletePage",
    "retrievePage",
    "retrieveDatabase",
]
CALENDAR_TOOLS = ["list_events", "get_event", "create_event", "update_event", "delete_event"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / ".state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4",
    )


@pytest.fixture
def state_config(temp_state_dir: Path) -> StateConfig:
    """Provide a test state configuration."""
    return StateConfig(backend="json", storage_path=temp_state_dir, ttl_minutes=30)


@pytest.fixture
def capability_config() -> CapabilityConfig:
    return CapabilityConfig(task_db_id=TASK_DB_ID, staff_db_id=STAFF_DB_ID)


@pytest.fixture
def orchestrator_config(
    llm_config: LLMConfig,
    state_config: StateConfig,
    capability_config: CapabilityConfig,
) -> OrchestratorConfig:
    """Provide a test orchestrator configuration."""
    return OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
        llm=llm_config,
        state=state_config,
        capabilities=capability_config,
        reminders=ReminderConfig(enabled=True, offsets_hours=[24, 3, 1]),
    )


@pytest.fixture
def task_provider() -> FakeCapabilityProvider:
    return FakeCapabilityProvider(TASK_TOOLS, description="Task database")


@pytest.fixture
def calendar_provider() -> FakeCapabilityProvider:
    return FakeCapabilityProvider(CALENDAR_TOOLS, description="Calendar")


def make_executor(
    *definitions: WorkflowDefinition,
    capabilities: dict[str, CapabilityProvider],
    clock: FakeClock,
    serialize_turns: bool = False,
) -> WorkflowExecutor:
    """Executor over an in-memory state store with ``definitions`` registered in order."""
    registry = WorkflowRegistry()
    for definition in definitions:
        registry.register(definition)
    store = StateStore(InMemoryStateBackend(), clock=clock)
    return WorkflowExecutor(registry, store, capabilities, serialize_turns=serialize_turns)


def message(content: str, user_id: str = "user-1", channel_id: str = "channel-1") -> IncomingMessage:
    return IncomingMessage(content=content, user_id=user_id, channel_id=channel_id)
