"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LLMResponse:
    """Text completion returned by a provider."""

    content: str


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This interface allows pluggable LLM backends (OpenAI, LLaMA, etc.).
    All calls are asynchronous; a rejected or timed-out call surfaces as an
    ordinary exception for the caller's error path.
    """

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        system_message: str | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate a completion for a single user prompt.

        Args:
            prompt: The input prompt.
            system_message: Optional system instruction placed before the prompt.
            temperature: Sampling temperature.
            json_mode: Request JSON-only output.
            max_tokens: Maximum tokens to generate.

        Returns:
            The completion.
        """
        pass

    async def complete_json(
        self,
        prompt: str,
        *,
        system_message: str | None = None,
        temperature: float | None = 0.2,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Structured variant of :meth:`complete` that requests JSON output."""
        return await self.complete(
            prompt,
            system_message=system_message,
            temperature=temperature,
            json_mode=True,
            max_tokens=max_tokens,
        )

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None
