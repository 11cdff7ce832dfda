"""State package initialization."""

from chat_workflow_orchestrator.state.backends import (
    InMemoryStateBackend,
    JsonFileStateBackend,
    StateBackend,
)
from chat_workflow_orchestrator.state.manager import StateStore
from chat_workflow_orchestrator.state.models import StateRow, WorkflowState

__all__ = [
    "InMemoryStateBackend",
    "JsonFileStateBackend",
    "StateBackend",
    "StateRow",
    "StateStore",
    "WorkflowState",
]
