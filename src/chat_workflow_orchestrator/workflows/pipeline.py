"""Select, validate, parse and execute one tool call."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from chat_workflow_orchestrator.capabilities.operations import Operation, OperationSet
from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider, CapabilityResponse
from chat_workflow_orchestrator.llm.tool_selector import ToolSelection, ToolSelector
from chat_workflow_orchestrator.workflows.errors import CapabilityExecutionError
from chat_workflow_orchestrator.workflows.safety import SafetyValidator
from chat_workflow_orchestrator.workflows.state_machine import ExecutionPhase, TurnTrace

logger = logging.getLogger(__name__)

ParamHook = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True, slots=True)
class ValidatedSelection:
    """A tool selection whose parameters passed the safety checks."""

    selection: ToolSelection
    parameters: dict[str, Any]
    advertised: tuple[str, ...]

    @property
    def tool(self) -> str:
        return self.selection.tool


class ToolPipeline:
    """Drives TOOL_SELECTING, VALIDATING and EXECUTING for a workflow.

    Args:
        selector: Tool selector backed by the language model.
        validator: Safety validator configured with this domain's substitutions.
        operations: The domain's closed operation union.
    """

    def __init__(
        self,
        selector: ToolSelector,
        validator: SafetyValidator,
        operations: OperationSet,
    ) -> None:
        self.selector = selector
        self.validator = validator
        self.operations = operations

    async def select(
        self,
        query: str,
        provider: CapabilityProvider,
        trace: TurnTrace,
        *,
        context_info: str | None = None,
    ) -> ValidatedSelection:
        """Ask the language model for a tool and sanitize its parameters."""
        trace.advance(ExecutionPhase.TOOL_SELECTING)
        tools = await provider.list_tools()
        selection = await self.selector.select(
            query,
            tools,
            context_info=context_info,
            service_description=provider.describe(),
        )

        trace.advance(ExecutionPhase.VALIDATING)
        params = self.validator.sanitize(selection.parameters)
        return ValidatedSelection(
            selection=selection,
            parameters=params,
            advertised=tuple(t.name for t in tools),
        )

    def parse(
        self,
        validated: ValidatedSelection,
        parameters: Mapping[str, Any] | None = None,
    ) -> Operation:
        params = validated.parameters if parameters is None else parameters
        return self.operations.parse(validated.tool, params, advertised=validated.advertised)

    async def plan(
        self,
        query: str,
        provider: CapabilityProvider,
        trace: TurnTrace,
        *,
        context_info: str | None = None,
        prepare: ParamHook | None = None,
    ) -> Operation:
        """Select a tool for ``query`` and turn it into a typed operation.

        ``prepare`` may complete the sanitized parameters (for example with a
        configured database id) before the operation is parsed.
        """
        validated = await self.select(query, provider, trace, context_info=context_info)
        params = validated.parameters
        if prepare is not None:
            params = await prepare(validated.tool, dict(params))
        return self.parse(validated, params)

    async def run(
        self,
        provider: CapabilityProvider,
        operation: Operation,
        trace: TurnTrace,
    ) -> CapabilityResponse:
        """Execute ``operation``.

        Raises:
            CapabilityExecutionError: If the provider reports a failure.
        """
        trace.advance(ExecutionPhase.EXECUTING)
        logger.debug(f"Executing {operation.tool} with {sorted(operation.to_params())}")
        response = await provider.execute(operation.tool, operation.to_params())
        if not response.success:
            raise CapabilityExecutionError(
                operation.tool, response.error or "unknown error", response.code
            )
        return response


def with_defaults(params: Mapping[str, Any], **defaults: Any) -> dict[str, Any]:
    """Return ``params`` with missing or empty keys filled from ``defaults``."""
    merged = dict(params)
    for key, value in defaults.items():
        if merged.get(key) in (None, ""):
            merged[key] = value
    return merged
