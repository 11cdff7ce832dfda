"""Task management workflow backed by a task database."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from chat_workflow_orchestrator.capabilities.operations import TASK_OPERATIONS
from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider
from chat_workflow_orchestrator.llm.provider import LLMProvider
from chat_workflow_orchestrator.llm.tool_selector import ToolSelector
from chat_workflow_orchestrator.state.manager import Clock, utc_now
from chat_workflow_orchestrator.workflows.errors import (
    CapabilityExecutionError,
    UnknownAssignee,
)
from chat_workflow_orchestrator.workflows.formatting import (
    describe_error,
    format_task_error,
    format_task_result,
    parse_datetime,
    task_summary,
)
from chat_workflow_orchestrator.workflows.name_resolver import NameResolver
from chat_workflow_orchestrator.workflows.pipeline import ToolPipeline, with_defaults
from chat_workflow_orchestrator.workflows.reminders import ReminderService
from chat_workflow_orchestrator.workflows.safety import SafetyValidator
from chat_workflow_orchestrator.workflows.types import (
    WorkflowContext,
    WorkflowDefinition,
    WorkflowResult,
)

logger = logging.getLogger(__name__)

TASK_WORKFLOW_ID = "notion-task"
TASK_CAPABILITY = "notion-tasks"
ASSIGNEE_PROPERTY = "担当者"

TASK_TRIGGERS: tuple[str, ...] = (
    "タスク管理",
    "タスク追加",
    "タスク一覧",
    "タスク完了",
    "タスク削除",
    "タスク編集",
    "タスクを管理",
    "タスクを追加",
    "タスクを表示",
    "タスクを完了",
    "タスクを削除",
    "タスクを編集",
    "TODOを追加",
    "TODOを管理",
    "TODOリスト",
    "TODO管理",
)

NOT_CONFIGURED_MESSAGE = (
    "The task database is not configured. Please contact an administrator."
)


def task_substitutions(task_db_id: str, staff_db_id: str = "") -> dict[str, str]:
    """Known internal variable names and the literal ids that replace them."""
    substitutions = {
        "taskDbId": task_db_id,
        "TASK_DB_ID": task_db_id,
        "NOTION_TASK_DB_ID": task_db_id,
    }
    if staff_db_id:
        substitutions.update(
            {
                "staffDbId": staff_db_id,
                "STAFF_DB_ID": staff_db_id,
                "NOTION_STAFF_DB_ID": staff_db_id,
            }
        )
    return substitutions


class TaskWorkflow:
    """Lists, creates, updates and deletes tasks.

    Selections are repaired with the configured database ids, assignee names
    are resolved to staff ids, and tasks with a future due date get
    reminders.
    """

    def __init__(
        self,
        llm: LLMProvider,
        selector: ToolSelector,
        *,
        task_db_id: str,
        staff_db_id: str = "",
        reminders: ReminderService | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.llm = llm
        self.task_db_id = task_db_id
        self.staff_db_id = staff_db_id
        self.reminders = reminders
        self._clock = clock
        self.pipeline = ToolPipeline(
            selector,
            SafetyValidator(task_substitutions(task_db_id, staff_db_id)),
            TASK_OPERATIONS,
        )
        self._resolver: NameResolver | None = None

        if not staff_db_id:
            logger.warning("Staff database is not configured; assignees cannot be resolved")

    def definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=TASK_WORKFLOW_ID,
            name="Task management",
            description="Manage tasks in the task database",
            triggers=TASK_TRIGGERS,
            required_capabilities=frozenset({TASK_CAPABILITY}),
            execute=self.execute,
            on_error=self.on_error,
        )

    def resolver(self, provider: CapabilityProvider) -> NameResolver:
        if self._resolver is None or self._resolver.provider is not provider:
            self._resolver = NameResolver(
                self.llm, provider, self.staff_db_id, clock=self._clock
            )
        return self._resolver

    def context_info(self) -> str:
        info = f"Today is {self._clock():%Y-%m-%d}."
        if self.staff_db_id:
            info += (
                " To filter by or set a person in charge, pass their name as the"
                " \"assignee\" parameter."
            )
        return info

    async def execute(self, query: str, context: WorkflowContext) -> WorkflowResult:
        if not self.task_db_id:
            logger.error("Task database id is not configured")
            return WorkflowResult.fail(NOT_CONFIGURED_MESSAGE)

        provider = context.capability(TASK_CAPABILITY)

        async def prepare(tool: str, params: dict[str, Any]) -> dict[str, Any]:
            return await self.prepare_parameters(tool, params, provider)

        operation = await self.pipeline.plan(
            query,
            provider,
            context.trace,
            context_info=self.context_info(),
            prepare=prepare,
        )
        response = await self.pipeline.run(provider, operation, context.trace)

        # The task change has already happened; a reminder failure must not fail the turn.
        try:
            await self._update_reminders(
                operation.tool, operation.to_params(), response.data, context
            )
        except Exception as e:
            logger.error(
                f"Failed to update reminders after {operation.tool}: {e}",
                extra={"tool": operation.tool},
            )
        return WorkflowResult.ok(
            format_task_result(operation.tool, response.data),
            data={"workflow_id": TASK_WORKFLOW_ID, "tool": operation.tool, "result": response.data},
        )

    async def prepare_parameters(
        self, tool: str, params: dict[str, Any], provider: CapabilityProvider
    ) -> dict[str, Any]:
        """Fill in database defaults and resolve an ``assignee`` name.

        Raises:
            UnknownAssignee: If the assignee matches no staff member.
        """
        if tool in ("queryDatabase", "retrieveDatabase"):
            params = with_defaults(params, database_id=self.task_db_id)
        elif tool == "createPage":
            parent = params.get("parent")
            if isinstance(parent, str) and parent:
                parent = {"database_id": parent}
            elif not isinstance(parent, Mapping):
                parent = {}
            params["parent"] = with_defaults(parent, database_id=self.task_db_id)

        assignee = params.pop("assignee", None)
        if isinstance(assignee, str) and assignee.strip():
            resolution = await self.resolver(provider).resolve(assignee.strip())
            if not resolution.matched:
                raise UnknownAssignee(assignee.strip())
            people = {"people": [{"id": resolution.staff_id}]}
            if tool in ("createPage", "updatePage"):
                properties = dict(params.get("properties") or {})
                properties[ASSIGNEE_PROPERTY] = people
                params["properties"] = properties
            elif tool == "queryDatabase" and not params.get("filter"):
                params["filter"] = {
                    "property": ASSIGNEE_PROPERTY,
                    "people": {"contains": resolution.staff_id},
                }
        return params

    async def _update_reminders(
        self, tool: str, params: Mapping[str, Any], data: Any, context: WorkflowContext
    ) -> None:
        if self.reminders is None:
            return
        if tool == "deletePage":
            await self.reminders.cancel(str(params.get("page_id")))
            return
        if tool not in ("createPage", "updatePage") or not isinstance(data, Mapping):
            return

        task = task_summary(data)
        due = due_date(task.due)
        if not task.id or due is None or due <= self._clock():
            return
        await self.reminders.schedule(task.id, task.title, due, context.message.channel_id)

    async def on_error(self, error: Exception, context: WorkflowContext) -> WorkflowResult:
        if isinstance(error, CapabilityExecutionError):
            return WorkflowResult.fail(format_task_error(error.code, error.error))
        return WorkflowResult.fail(describe_error(error))


def due_date(value: Any) -> datetime | None:
    """Parse a due date, treating a value without an offset as UTC."""
    parsed = parse_datetime(value)
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
