"""Top-level application context."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from chat_workflow_orchestrator.capabilities.http_provider import HttpCapabilityProvider
from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider
from chat_workflow_orchestrator.core.config import OrchestratorConfig
from chat_workflow_orchestrator.llm.factory import LLMFactory
from chat_workflow_orchestrator.llm.provider import LLMProvider
from chat_workflow_orchestrator.state.manager import Clock, StateStore, utc_now
from chat_workflow_orchestrator.workflows.calendar import CALENDAR_CAPABILITY, CalendarWorkflow
from chat_workflow_orchestrator.workflows.executor import WorkflowExecutor
from chat_workflow_orchestrator.workflows.registry import WorkflowRegistry
from chat_workflow_orchestrator.workflows.reminders import (
    LoggingNotifier,
    Notifier,
    ReminderService,
    ReminderStore,
)
from chat_workflow_orchestrator.workflows.tasks import TASK_CAPABILITY, TaskWorkflow
from chat_workflow_orchestrator.workflows.types import IncomingMessage, WorkflowResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SweepReport:
    expired_states: int
    reminders_sent: int

    def to_json(self) -> dict[str, int]:
        return {"expired_states": self.expired_states, "reminders_sent": self.reminders_sent}


def build_capabilities(config: OrchestratorConfig) -> dict[str, CapabilityProvider]:
    """Create HTTP providers for every tool server with a configured base URL."""
    settings = config.capabilities
    providers: dict[str, CapabilityProvider] = {}
    if settings.tasks_base_url:
        providers[TASK_CAPABILITY] = HttpCapabilityProvider(
            settings.tasks_base_url,
            description="Task database: search, create, update and delete tasks.",
            api_key=settings.tasks_api_key,
            timeout=settings.request_timeout_seconds,
        )
    if settings.calendar_base_url:
        providers[CALENDAR_CAPABILITY] = HttpCapabilityProvider(
            settings.calendar_base_url,
            description="Shared calendar: list, create, update and delete events.",
            api_key=settings.calendar_api_key,
            timeout=settings.request_timeout_seconds,
        )
    return providers


class Orchestrator:
    """Owns every collaborator of the chat workflow core.

    Nothing here is a module-level singleton: each orchestrator builds its
    own registry, state store and providers, so tests can run isolated
    instances side by side.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        llm: LLMProvider | None = None,
        capabilities: Mapping[str, CapabilityProvider] | None = None,
        notifier: Notifier | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration object. If None, loads from environment.
            llm: Language-model gateway; created from ``config.llm`` if None.
            capabilities: Capability providers keyed by id; HTTP providers are
                created from ``config.capabilities`` if None.
            notifier: Reminder delivery channel; reminders are only logged if None.
            clock: Source of the current time.
        """
        if config is None:
            config = OrchestratorConfig()
            config.setup_logging()
        self.config = config

        logger.info("Initializing chat workflow orchestrator")

        self.llm: LLMProvider = llm or LLMFactory.create(config.llm)
        self.capabilities: dict[str, CapabilityProvider] = dict(
            build_capabilities(config) if capabilities is None else capabilities
        )
        self.state = StateStore.from_config(config.state, clock=clock)

        self.reminders: ReminderService | None = None
        if config.reminders.enabled:
            self.reminders = ReminderService(
                ReminderStore(config.state.reminders_file),
                notifier or LoggingNotifier(),
                offsets_hours=config.reminders.offsets_hours,
                clock=clock,
            )

        selector = LLMFactory.create_selector(self.llm, config.llm)
        self.registry = WorkflowRegistry()
        # Registration order is trigger priority: tasks before calendar.
        self.registry.register(
            TaskWorkflow(
                self.llm,
                selector,
                task_db_id=config.capabilities.task_db_id,
                staff_db_id=config.capabilities.staff_db_id,
                reminders=self.reminders,
                clock=clock,
            ).definition()
        )
        self.registry.register(
            CalendarWorkflow(
                selector, calendar_id=config.capabilities.calendar_id, clock=clock
            ).definition()
        )

        self.executor = WorkflowExecutor(
            self.registry,
            self.state,
            self.capabilities,
            serialize_turns=config.state.serialize_turns,
        )

        logger.info(
            f"Orchestrator initialized with {len(self.registry)} workflows "
            f"and capabilities {sorted(self.capabilities)}"
        )

    async def process_message(self, message: IncomingMessage) -> WorkflowResult | None:
        return await self.executor.process_message(message)

    async def sweep(self) -> SweepReport:
        """Run periodic maintenance: expire state and deliver due reminders."""
        expired = await self.state.sweep_expired()
        sent = await self.reminders.dispatch_due() if self.reminders is not None else 0
        return SweepReport(expired_states=expired, reminders_sent=sent)

    async def aclose(self) -> None:
        for provider in self.capabilities.values():
            await provider.aclose()
        await self.llm.aclose()
