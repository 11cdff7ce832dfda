"""OpenAI LLM provider implementation."""

import logging
from typing import Any

from openai import AsyncOpenAI

from chat_workflow_orchestrator.core.config import LLMConfig
from chat_workflow_orchestrator.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, config: LLMConfig, client: AsyncOpenAI | None = None) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration.
            client: Pre-built async client (tests inject one).

        Raises:
            ValueError: If API key is not provided.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = client or AsyncOpenAI(api_key=config.openai_api_key)
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info(f"OpenAI provider initialized with model: {self.model}")

    async def complete(
        self,
        prompt: str,
        *,
        system_message: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion using the OpenAI chat completions API."""
        temp = temperature if temperature is not None else self.temperature

        messages: list[dict[str, str]] = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})

        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temp,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        logger.debug(f"Generating completion for prompt: {prompt[:100]}...")

        response = await self.client.chat.completions.create(**request)

        content = response.choices[0].message.content or ""
        logger.debug(f"Generated {len(content)} characters")

        return LLMResponse(content=content)

    async def aclose(self) -> None:
        await self.client.close()
