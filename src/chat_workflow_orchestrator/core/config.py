"""Core configuration for the orchestrator."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_workflow_orchestrator.core.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for LLM providers."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    # OpenAI settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4-turbo",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Default temperature for free-form completions",
    )
    selection_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Temperature used for tool selection (low favours determinism)",
    )
    max_tokens: int = Field(
        default=1000,
        gt=0,
        description="Completion token limit",
    )

    # LLaMA settings
    llama_model_path: Path | None = Field(
        default=None,
        description="Path to LLaMA model file",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window size for LLaMA",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="Number of threads for LLaMA (None = auto)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )


class StateConfig(BaseSettings):
    """Configuration for conversational state."""

    backend: Literal["json", "memory"] = Field(
        default="json",
        description="Durable backend for workflow state rows",
    )
    storage_path: Path = Field(
        default=Path(".state"),
        description="Directory where durable state is persisted",
    )
    ttl_minutes: float = Field(
        default=30.0,
        gt=0,
        description="Lifetime of a follow-up state, measured from its last write",
    )
    sweep_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Interval of the background expiry sweep run by the server",
    )
    serialize_turns: bool = Field(
        default=False,
        description="Serialize turns per (user, channel) with an asyncio lock",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_STATE_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def state_rows_file(self) -> Path:
        """Path where workflow state rows are persisted."""

        return self.storage_path / "workflow_states.json"

    @property
    def reminders_file(self) -> Path:
        """Path where scheduled reminders are persisted."""

        return self.storage_path / "reminders.json"


class CapabilityConfig(BaseSettings):
    """Configuration for the external capability providers."""

    task_db_id: str = Field(default="", description="Task database identifier")
    staff_db_id: str = Field(default="", description="Staff database identifier")

    tasks_base_url: str = Field(default="", description="Base URL of the task tool server")
    tasks_api_key: str | None = Field(default=None, description="Bearer token for tasks")

    calendar_base_url: str = Field(
        default="", description="Base URL of the calendar tool server"
    )
    calendar_api_key: str | None = Field(default=None, description="Bearer token for calendar")
    calendar_id: str = Field(default="primary", description="Calendar identifier")

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout for capability calls",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_CAPABILITY_",
        env_file=".env",
        extra="ignore",
    )


class ReminderConfig(BaseSettings):
    """Configuration for task due-date reminders."""

    enabled: bool = Field(default=True, description="Schedule reminders for due tasks")
    offsets_hours: list[int] = Field(
        default_factory=lambda: [24, 3, 1],
        description="Hours before the due date at which reminders fire",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_REMINDER_",
        env_file=".env",
        extra="ignore",
    )


class OrchestratorConfig(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )
    state: StateConfig = Field(
        default_factory=StateConfig,
        description="State configuration",
    )
    capabilities: CapabilityConfig = Field(
        default_factory=CapabilityConfig,
        description="Capability provider configuration",
    )
    reminders: ReminderConfig = Field(
        default_factory=ReminderConfig,
        description="Reminder configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level, fmt=self.log_format)

        if self.debug:
            logging.getLogger("chat_workflow_orchestrator").setLevel(logging.DEBUG)
