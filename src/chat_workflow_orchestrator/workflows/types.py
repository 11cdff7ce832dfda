"""Core value types shared by the registry, the executor and the workflows."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from chat_workflow_orchestrator.workflows.errors import MissingCapability

if TYPE_CHECKING:
    from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider
    from chat_workflow_orchestrator.state.models import WorkflowState
    from chat_workflow_orchestrator.workflows.state_machine import TurnTrace


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    """A chat message addressed to the orchestrator."""

    content: str
    user_id: str
    channel_id: str
    message_id: str = ""

    @property
    def session_key(self) -> str:
        """Key under which follow-up state for this conversation is stored."""
        return f"{self.user_id}:{self.channel_id}"


@dataclass(frozen=True, slots=True)
class WorkflowResult:
    """Outcome of a workflow turn.

    ``require_follow_up`` is the only way a workflow keeps its state alive for
    the next message. Follow-up results carry ``action``, ``step`` and
    ``state`` entries in ``data`` (see :meth:`follow_up`).
    """

    success: bool
    message: str
    data: Any = None
    require_follow_up: bool = False

    @classmethod
    def ok(cls, message: str, data: Any = None) -> WorkflowResult:
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, data: Any = None) -> WorkflowResult:
        return cls(success=False, message=message, data=data)

    @classmethod
    def follow_up(
        cls,
        message: str,
        *,
        action: str,
        state: Mapping[str, Any] | None = None,
        step: int = 1,
        success: bool = True,
    ) -> WorkflowResult:
        """Ask the user a question and keep the conversation open."""
        return cls(
            success=success,
            message=message,
            data={"action": action, "step": step, "state": dict(state or {})},
            require_follow_up=True,
        )

    def to_json(self) -> dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "require_follow_up": self.require_follow_up,
        }


@dataclass(slots=True)
class WorkflowContext:
    """Per-turn collaborators handed to a workflow.

    ``state`` is set only on the continuation branch. Workflows must not keep
    a reference to it beyond the current call.
    """

    message: IncomingMessage
    capabilities: Mapping[str, CapabilityProvider]
    trace: TurnTrace
    state: WorkflowState | None = None

    @property
    def is_continuation(self) -> bool:
        return self.state is not None

    def capability(self, capability_id: str) -> CapabilityProvider:
        provider = self.capabilities.get(capability_id)
        if provider is None:
            raise MissingCapability(capability_id)
        return provider


ExecuteFn = Callable[[str, WorkflowContext], Awaitable[WorkflowResult]]
ErrorFn = Callable[[Exception, WorkflowContext], Awaitable[WorkflowResult]]


@dataclass(frozen=True, slots=True)
class WorkflowDefinition:
    """A registered automation matched by trigger phrases or patterns."""

    id: str
    name: str
    triggers: tuple[str, ...]
    execute: ExecuteFn
    required_capabilities: frozenset[str] = field(default_factory=frozenset)
    on_error: ErrorFn | None = None
    description: str = ""

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "triggers": list(self.triggers),
            "required_capabilities": sorted(self.required_capabilities),
        }
