"""LLM package initialization."""

from chat_workflow_orchestrator.llm.factory import LLMFactory
from chat_workflow_orchestrator.llm.provider import LLMProvider, LLMResponse
from chat_workflow_orchestrator.llm.tool_selector import ToolSelection, ToolSelector

__all__ = [
    "LLMFactory",
    "LLMProvider",
    "LLMResponse",
    "ToolSelection",
    "ToolSelector",
]
