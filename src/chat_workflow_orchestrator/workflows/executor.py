"""Routes chat messages to workflows and manages follow-up state."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider
from chat_workflow_orchestrator.state.manager import StateStore
from chat_workflow_orchestrator.state.models import WorkflowState
from chat_workflow_orchestrator.workflows.errors import MissingCapability, WorkflowError
from chat_workflow_orchestrator.workflows.formatting import GENERIC_FAILURE_MESSAGE, describe_error
from chat_workflow_orchestrator.workflows.registry import WorkflowRegistry
from chat_workflow_orchestrator.workflows.state_machine import ExecutionPhase, TurnTrace
from chat_workflow_orchestrator.workflows.types import (
    IncomingMessage,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowResult,
)

logger = logging.getLogger(__name__)

CANCEL_WORDS = frozenset({"キャンセル", "cancel"})
CANCELLED_MESSAGE = "Cancelled the pending operation."


class WorkflowExecutor:
    """Processes one chat message at a time against the registered workflows.

    A message from a user with live follow-up state continues that workflow
    without trigger matching. Otherwise the first workflow whose trigger
    matches runs. Every exception raised by a workflow is converted into an
    unsuccessful :class:`WorkflowResult`, and the user's state is cleared.

    Args:
        registry: Registered workflows, in priority order.
        state_store: Follow-up state keyed by ``"<user_id>:<channel_id>"``.
        capabilities: Capability providers keyed by capability id.
        serialize_turns: Run at most one turn per session key at a time.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        state_store: StateStore,
        capabilities: Mapping[str, CapabilityProvider],
        *,
        serialize_turns: bool = False,
    ) -> None:
        self.registry = registry
        self.state_store = state_store
        self.capabilities = capabilities
        self.serialize_turns = serialize_turns
        self._locks: dict[str, asyncio.Lock] = {}

    async def process_message(self, message: IncomingMessage) -> WorkflowResult | None:
        """Handle ``message``.

        Returns:
            The workflow's result, or None when no workflow applies and the
            caller should fall back to generic conversation.
        """
        if not self.serialize_turns:
            return await self._process(message)
        lock = self._locks.setdefault(message.session_key, asyncio.Lock())
        async with lock:
            return await self._process(message)

    async def _process(self, message: IncomingMessage) -> WorkflowResult | None:
        key = message.session_key
        state = await self.state_store.get(key)

        if state is not None:
            if message.content.strip().lower() in CANCEL_WORDS:
                await self.state_store.clear(key)
                logger.info("Pending workflow cancelled", extra={"key": key})
                return WorkflowResult.ok(CANCELLED_MESSAGE)

            definition = self.registry.get(state.workflow_id)
            if definition is not None:
                logger.info(
                    f"Continuing workflow {definition.id} at step {state.step}",
                    extra={"key": key, "action": state.action},
                )
                return await self.run(definition, message, state)

            logger.warning(
                f"Saved state refers to unknown workflow {state.workflow_id}; discarding it",
                extra={"key": key},
            )
            await self.state_store.clear(key)

        definition = self.registry.find_by_trigger(message.content)
        if definition is None:
            return None
        logger.info(f"Message matched workflow {definition.id}", extra={"key": key})
        return await self.run(definition, message)

    async def run(
        self,
        definition: WorkflowDefinition,
        message: IncomingMessage,
        state: WorkflowState | None = None,
    ) -> WorkflowResult:
        key = message.session_key
        trace = TurnTrace()
        trace.advance(ExecutionPhase.TRIGGERED)
        context = WorkflowContext(
            message=message,
            capabilities=self.capabilities,
            trace=trace,
            state=state,
        )

        try:
            missing = sorted(definition.required_capabilities - set(self.capabilities))
            if missing:
                raise MissingCapability(missing[0])
            result = await definition.execute(message.content, context)
        except Exception as e:
            logger.error(
                f"Workflow {definition.id} failed in phase {trace.phase.value}: {e}",
                exc_info=not isinstance(e, WorkflowError),
                extra={"key": key, "workflow_id": definition.id},
            )
            result = await self._handle_error(definition, e, context)
            trace.fail()
            await self.state_store.clear(key)
            return result

        if result.require_follow_up:
            await self.state_store.save(key, self._follow_up_state(definition, result, state))
            trace.finish(success=result.success, follow_up=True)
        else:
            if state is not None:
                await self.state_store.clear(key)
            trace.finish(success=result.success)

        logger.info(
            f"Workflow {definition.id} finished in {trace.phase.value}",
            extra={"key": key, "workflow_id": definition.id, "phases": trace.to_json()},
        )
        return result

    async def _handle_error(
        self, definition: WorkflowDefinition, error: Exception, context: WorkflowContext
    ) -> WorkflowResult:
        if definition.on_error is None:
            return WorkflowResult.fail(describe_error(error))
        try:
            result = await definition.on_error(error, context)
        except Exception as e:
            logger.error(f"Error handler of workflow {definition.id} failed: {e}")
            return WorkflowResult.fail(GENERIC_FAILURE_MESSAGE)
        if result.success or result.require_follow_up:
            # A failed turn always ends without follow-up.
            return WorkflowResult.fail(result.message, result.data)
        return result

    @staticmethod
    def _follow_up_state(
        definition: WorkflowDefinition,
        result: WorkflowResult,
        previous: WorkflowState | None,
    ) -> WorkflowState:
        data: Any = result.data if isinstance(result.data, Mapping) else {}
        state_data = data.get("state")
        return WorkflowState(
            workflow_id=definition.id,
            action=str(data.get("action") or (previous.action if previous else "")),
            step=int(data.get("step") or (previous.step if previous else 0)),
            data=dict(state_data) if isinstance(state_data, Mapping) else {},
        )
