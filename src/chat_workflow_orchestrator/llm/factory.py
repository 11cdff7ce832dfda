"""Builds the language-model gateway and the tool selector that drives it."""

import logging
from collections.abc import Callable

from chat_workflow_orchestrator.core.config import LLMConfig
from chat_workflow_orchestrator.llm.llama_provider import LLaMAProvider
from chat_workflow_orchestrator.llm.openai_provider import OpenAIProvider
from chat_workflow_orchestrator.llm.provider import LLMProvider
from chat_workflow_orchestrator.llm.tool_selector import ToolSelector

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, Callable[[LLMConfig], LLMProvider]] = {
    "openai": OpenAIProvider,
    "llama": LLaMAProvider,
}


class LLMFactory:
    """Creates the gateway named by ``LLMConfig.provider``."""

    @staticmethod
    def create(config: LLMConfig) -> LLMProvider:
        """Create the configured LLM provider.

        Raises:
            ValueError: If the provider is unknown or missing its credential
                or model path.
        """
        builder = PROVIDERS.get(config.provider)
        if builder is None:
            supported = ", ".join(sorted(PROVIDERS))
            raise ValueError(
                f"Unsupported LLM provider: {config.provider} (expected one of {supported})"
            )

        model = config.openai_model if config.provider == "openai" else config.llama_model_path
        logger.info(f"Creating {config.provider} LLM provider", extra={"model": str(model)})
        return builder(config)

    @staticmethod
    def create_selector(llm: LLMProvider, config: LLMConfig) -> ToolSelector:
        """Tool selector over ``llm`` at the configured selection temperature."""
        return ToolSelector(llm, temperature=config.selection_temperature)
