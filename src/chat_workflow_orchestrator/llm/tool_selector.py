"""LLM-mediated tool selection.

The selector renders a deterministic prompt listing every advertised tool,
asks the language model for a JSON-only answer at low temperature and parses
it into a :class:`ToolSelection`.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from chat_workflow_orchestrator.capabilities.provider import ToolDescriptor
from chat_workflow_orchestrator.llm.provider import LLMProvider
from chat_workflow_orchestrator.workflows.errors import (
    JSONParseFailed,
    NoToolsAvailable,
    SelectionParseError,
)
from chat_workflow_orchestrator.workflows.safety import scan_raw

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_MESSAGE = (
    "You are the tool-selection component of a chat assistant. "
    "Choose the single best tool for the user's request and reply with JSON only."
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass(frozen=True, slots=True)
class ToolSelection:
    """The model's chosen operation and parameters."""

    tool: str
    parameters: dict[str, Any] = field(default_factory=dict)
    reasoning: str | None = None
    fallback: bool = False


def format_tool(tool: ToolDescriptor) -> str:
    lines = [f"- {tool.name}: {tool.description}", "  Parameters:"]
    lines.extend(f"    - {name}: {desc}" for name, desc in tool.parameters.items())
    return "\n".join(lines)


def build_selection_prompt(
    user_query: str,
    tools: Sequence[ToolDescriptor],
    context_info: str | None = None,
    service_description: str | None = None,
) -> str:
    """Render the tool-selection prompt.

    The output depends only on the arguments.
    """
    sections = []
    if service_description:
        sections.append(f"Service: {service_description}")
    sections.append(f'User request: "{user_query}"')
    if context_info:
        sections.append(f"Context:\n{context_info}")
    sections.append("Available tools:\n" + "\n\n".join(format_tool(t) for t in tools))
    sections.append(
        "Pick the tool that best fits the user's request and extract or infer the "
        "parameters it needs. Parameter values must be literal values: never "
        "variable names, function calls, template syntax or environment references."
    )
    sections.append(
        "Respond with a JSON object in this format:\n"
        "{\n"
        '  "tool": "name of the selected tool",\n'
        '  "parameters": {"parameter name": "value"},\n'
        '  "reasoning": "why this tool and these parameters were chosen"\n'
        "}"
    )
    return "\n\n".join(sections) + "\n"


def _strip_fence(content: str) -> str:
    text = content.strip()
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


class ToolSelector:
    """Chooses a tool and its parameters with the language model."""

    def __init__(
        self,
        llm: LLMProvider,
        *,
        temperature: float = 0.2,
        system_message: str = DEFAULT_SYSTEM_MESSAGE,
    ) -> None:
        self.llm = llm
        self.temperature = temperature
        self.system_message = system_message

    async def select(
        self,
        user_query: str,
        tools: Sequence[ToolDescriptor],
        context_info: str | None = None,
        service_description: str | None = None,
    ) -> ToolSelection:
        """Select a tool for ``user_query``.

        Args:
            user_query: The user's message, embedded verbatim.
            tools: Tools advertised for this request.
            context_info: Optional free-text context block.
            service_description: Optional summary of the external service.

        Returns:
            The selection. An unknown tool name is replaced with the first
            advertised tool and the substitution is noted in ``reasoning``.

        Raises:
            NoToolsAvailable: If ``tools`` is empty.
            RawPatternDetected: If the completion contains a call-like token.
            SelectionParseError: If the completion cannot be interpreted.
        """
        if not tools:
            raise NoToolsAvailable("No tools are available for this request")

        prompt = build_selection_prompt(user_query, tools, context_info, service_description)
        logger.info(
            f"Selecting tool for query {user_query[:50]!r} among {len(tools)} tools",
        )
        response = await self.llm.complete_json(
            prompt,
            system_message=self.system_message,
            temperature=self.temperature,
        )

        scan_raw(response.content)
        selection = self.parse(response.content, tools)
        logger.info(
            f"Selected tool {selection.tool!r} with {len(selection.parameters)} parameters",
            extra={"tool": selection.tool, "fallback": selection.fallback},
        )
        return selection

    def parse(self, content: str, tools: Sequence[ToolDescriptor]) -> ToolSelection:
        text = _strip_fence(content)
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Tool selection is not valid JSON: {e}")
            raise JSONParseFailed(content, str(e)) from e

        if not isinstance(raw, dict):
            raise SelectionParseError("Tool selection must be a JSON object")

        tool = raw.get("tool")
        if not isinstance(tool, str) or not tool:
            raise SelectionParseError("Tool selection has no tool name")

        parameters = raw.get("parameters") or {}
        if not isinstance(parameters, dict):
            raise SelectionParseError("Tool selection parameters must be an object")

        reasoning = raw.get("reasoning")
        reasoning = str(reasoning) if reasoning is not None else None

        names = [t.name for t in tools]
        if tool in names:
            return ToolSelection(tool=tool, parameters=parameters, reasoning=reasoning)

        default = names[0]
        logger.warning(f"Unknown tool {tool!r} selected; falling back to {default!r}")
        note = f"Selected tool {tool!r} is not available; fell back to {default!r}."
        return ToolSelection(
            tool=default,
            parameters=parameters,
            reasoning=f"{note} {reasoning}" if reasoning else note,
            fallback=True,
        )
