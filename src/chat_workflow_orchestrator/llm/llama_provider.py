"""Local LLaMA LLM provider implementation."""

import asyncio
import logging
from typing import Any

from chat_workflow_orchestrator.core.config import LLMConfig
from chat_workflow_orchestrator.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class LLaMAProvider(LLMProvider):
    """Local LLaMA model provider implementation.

    Requires llama-cpp-python to be installed:
        pip install llama-cpp-python

    Inference is blocking, so each call runs in a worker thread to keep the
    event loop free for other users' turns.
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the LLaMA provider.

        Args:
            config: LLM configuration.

        Raises:
            ValueError: If model path is not provided.
            ImportError: If llama-cpp-python is not installed.
        """
        if not config.llama_model_path:
            raise ValueError("LLaMA model path is required")

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise ImportError(
                "llama-cpp-python is required for LLaMA provider. "
                "Install it with: pip install llama-cpp-python"
            ) from e

        self.config = config

        logger.info(f"Loading LLaMA model from: {config.llama_model_path}")

        self.llm = Llama(
            model_path=str(config.llama_model_path),
            n_ctx=config.llama_n_ctx,
            n_threads=config.llama_n_threads,
            verbose=False,
        )

        logger.info("LLaMA model loaded successfully")

    async def complete(
        self,
        prompt: str,
        *,
        system_message: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a chat completion using the local LLaMA model."""
        messages: list[dict[str, str]] = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "messages": messages,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": temperature if temperature is not None else 0.7,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.debug(f"Generating chat completion with {len(messages)} messages")

        result = await asyncio.to_thread(self.llm.create_chat_completion, **kwargs)

        content = result["choices"][0]["message"]["content"] or ""
        logger.debug(f"Generated {len(content)} characters")

        return LLMResponse(content=content)
