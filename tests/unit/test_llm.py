"""Unit tests for LLM providers."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from chat_workflow_orchestrator.core.config import LLMConfig
from chat_workflow_orchestrator.llm.factory import LLMFactory
from chat_workflow_orchestrator.llm.openai_provider import OpenAIProvider


def _completion(content: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_factory_creates_openai_provider(llm_config: LLMConfig) -> None:
    """Test factory creates OpenAI provider."""
    provider = LLMFactory.create(llm_config)

    assert isinstance(provider, OpenAIProvider)


def test_factory_rejects_unknown_provider(llm_config: LLMConfig) -> None:
    config = llm_config.model_copy(update={"provider": "unknown"})

    with pytest.raises(ValueError, match="Unsupported LLM provider"):
        LLMFactory.create(config)


def test_factory_error_lists_supported_providers(llm_config: LLMConfig) -> None:
    config = llm_config.model_copy(update={"provider": "mistral"})

    with pytest.raises(ValueError, match="expected one of llama, openai"):
        LLMFactory.create(config)


def test_factory_selector_uses_selection_temperature(llm_config: LLMConfig) -> None:
    config = llm_config.model_copy(update={"selection_temperature": 0.05})
    provider = LLMFactory.create(config)

    selector = LLMFactory.create_selector(provider, config)

    assert selector.llm is provider
    assert selector.temperature == 0.05


def test_openai_provider_requires_api_key() -> None:
    with pytest.raises(ValueError):
        OpenAIProvider(LLMConfig(openai_api_key=None))


def test_llama_provider_requires_model_path() -> None:
    config = LLMConfig(provider="llama", llama_model_path=None)

    with pytest.raises(ValueError):
        LLMFactory.create(config)


@pytest.mark.asyncio
async def test_openai_complete_json_requests_json_object(llm_config: LLMConfig) -> None:
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=_completion('{"tool": "x"}'))
    provider = OpenAIProvider(llm_config, client=client)

    response = await provider.complete_json("pick a tool", system_message="be precise")

    assert response.content == '{"tool": "x"}'
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4"
    assert kwargs["temperature"] == 0.2
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": "be precise"}
    assert kwargs["messages"][-1] == {"role": "user", "content": "pick a tool"}


@pytest.mark.asyncio
async def test_openai_complete_uses_configured_temperature(llm_config: LLMConfig) -> None:
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=_completion("hello"))
    provider = OpenAIProvider(llm_config, client=client)

    response = await provider.complete("say hello")

    assert response.content == "hello"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["temperature"] == llm_config.openai_temperature
    assert "response_format" not in kwargs
