"""Calendar workflow: list, inspect, create, update and delete events."""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any

from chat_workflow_orchestrator.capabilities.operations import CALENDAR_OPERATIONS, Operation
from chat_workflow_orchestrator.capabilities.provider import CapabilityProvider
from chat_workflow_orchestrator.llm.tool_selector import ToolSelector
from chat_workflow_orchestrator.state.manager import Clock, utc_now
from chat_workflow_orchestrator.state.models import WorkflowState
from chat_workflow_orchestrator.workflows.errors import CapabilityExecutionError
from chat_workflow_orchestrator.workflows.formatting import (
    describe_error,
    event_rows,
    event_title,
    format_calendar_error,
    format_calendar_result,
    format_event_choices,
)
from chat_workflow_orchestrator.workflows.pipeline import ToolPipeline, with_defaults
from chat_workflow_orchestrator.workflows.safety import SafetyValidator
from chat_workflow_orchestrator.workflows.state_machine import TurnTrace
from chat_workflow_orchestrator.workflows.types import (
    WorkflowContext,
    WorkflowDefinition,
    WorkflowResult,
)

logger = logging.getLogger(__name__)

CALENDAR_WORKFLOW_ID = "calendar"
CALENDAR_CAPABILITY = "google-calendar"

SELECT_EVENT_TO_DELETE = "select_event_to_delete"
SELECT_EVENT_TO_EDIT = "select_event_to_edit"

CALENDAR_TRIGGERS: tuple[str, ...] = (
    "予定",
    "スケジュール",
    "カレンダー",
    "空き時間",
    "/今日の予定/i",
    "/明日の予定/i",
    "/今週の予定/i",
    "/スケジュール.*追加/i",
    "/スケジュール.*登録/i",
    "/予定.*入れて/i",
    "/予定.*削除/i",
    "/予定.*変更/i",
    "/予定.*編集/i",
    "/いつ.*空い/i",
    "/日程.*調整/i",
)

# Parameters the model may send alongside update_event/delete_event to find the event.
SEARCH_KEYS = ("q", "timeMin", "timeMax")
CHANGE_KEYS = ("summary", "start", "end", "description", "location")

MAX_CANDIDATES = 10

_MONTH_DAY = re.compile(r"(\d{1,2})月(\d{1,2})日")
_INDEX_REPLY = re.compile(r"\d+", re.ASCII)


def extract_date_hint(query: str, today: date) -> date | None:
    """Resolve a relative Japanese date expression in ``query``.

    A month/day that has already passed this year refers to next year.
    """
    if "今日" in query:
        return today
    if "明後日" in query:
        return today + timedelta(days=2)
    if "明日" in query:
        return today + timedelta(days=1)
    if "昨日" in query:
        return today - timedelta(days=1)

    match = _MONTH_DAY.search(query)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        year = today.year + 1 if (month, day) < (today.month, today.day) else today.year
        try:
            return date(year, month, day)
        except ValueError:
            return None

    if "今週" in query:
        return today
    if "来週" in query:
        return today + timedelta(days=7)
    return None


def compact_event(event: Mapping[str, Any]) -> dict[str, Any]:
    """The subset of an event kept in follow-up state."""
    return {
        "id": event.get("id"),
        "summary": event_title(event),
        "start": event.get("start"),
        "end": event.get("end"),
    }


class CalendarWorkflow:
    """Schedules, lists and changes calendar events.

    Deleting or editing an event the user described without an id first
    lists candidate events. When several match, the user picks one by number
    on the next turn.
    """

    def __init__(
        self,
        selector: ToolSelector,
        *,
        calendar_id: str = "primary",
        clock: Clock = utc_now,
    ) -> None:
        self.calendar_id = calendar_id
        self._clock = clock
        self.pipeline = ToolPipeline(selector, SafetyValidator(), CALENDAR_OPERATIONS)

    def definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=CALENDAR_WORKFLOW_ID,
            name="Schedule management",
            description="Manage events in the shared calendar",
            triggers=CALENDAR_TRIGGERS,
            required_capabilities=frozenset({CALENDAR_CAPABILITY}),
            execute=self.execute,
            on_error=self.on_error,
        )

    def context_info(self, query: str) -> str:
        today = self._clock().date()
        info = f"Today is {today:%Y-%m-%d}."
        hint = extract_date_hint(query, today)
        if hint is not None:
            info += f" Date referred to in the request: {hint:%Y-%m-%d}."
        return info

    async def execute(self, query: str, context: WorkflowContext) -> WorkflowResult:
        provider = context.capability(CALENDAR_CAPABILITY)
        if context.state is not None:
            return await self.continue_selection(query, context.state, provider, context.trace)

        validated = await self.pipeline.select(
            query, provider, context.trace, context_info=self.context_info(query)
        )
        params = validated.parameters
        if validated.tool in CALENDAR_OPERATIONS.tools and self.calendar_id:
            params = with_defaults(params, calendarId=self.calendar_id)

        if validated.tool in ("delete_event", "update_event") and not params.get("eventId"):
            return await self.choose_event(validated.tool, params, query, provider, context.trace)

        operation = self.pipeline.parse(validated, params)
        response = await self.pipeline.run(provider, operation, context.trace)
        return WorkflowResult.ok(
            format_calendar_result(operation.tool, response.data),
            data={
                "workflow_id": CALENDAR_WORKFLOW_ID,
                "tool": operation.tool,
                "result": response.data,
            },
        )

    async def choose_event(
        self,
        tool: str,
        params: dict[str, Any],
        query: str,
        provider: CapabilityProvider,
        trace: TurnTrace,
    ) -> WorkflowResult:
        """List candidates for an event described without an id."""
        search: dict[str, Any] = {k: params[k] for k in SEARCH_KEYS if params.get(k)}
        if "timeMin" not in search and "timeMax" not in search:
            hint = extract_date_hint(query, self._clock().date())
            if hint is not None:
                search["timeMin"] = f"{hint:%Y-%m-%d}T00:00:00Z"
                search["timeMax"] = f"{hint + timedelta(days=1):%Y-%m-%d}T00:00:00Z"
        listing = CALENDAR_OPERATIONS.parse(
            "list_events",
            {**search, "calendarId": params.get("calendarId"), "maxResults": MAX_CANDIDATES},
        )
        response = await self.pipeline.run(provider, listing, trace)
        events = [compact_event(e) for e in event_rows(response.data) if e.get("id")]
        changes = {k: params[k] for k in CHANGE_KEYS if k in params}
        logger.info(f"Found {len(events)} candidate events for {tool}")

        if not events:
            return WorkflowResult.fail("No matching events were found.")
        if len(events) == 1:
            return await self.apply(
                tool, events[0], changes, params.get("calendarId"), provider, trace
            )

        action = SELECT_EVENT_TO_DELETE if tool == "delete_event" else SELECT_EVENT_TO_EDIT
        verb = "delete" if tool == "delete_event" else "edit"
        state: dict[str, Any] = {"events": events, "calendar_id": params.get("calendarId")}
        if action == SELECT_EVENT_TO_EDIT:
            state["changes"] = changes
        return WorkflowResult.follow_up(
            f"Several events match. Which one should I {verb}? Reply with its number.\n"
            f"{format_event_choices(events)}",
            action=action,
            state=state,
        )

    async def continue_selection(
        self,
        reply: str,
        state: WorkflowState,
        provider: CapabilityProvider,
        trace: TurnTrace,
    ) -> WorkflowResult:
        """Apply the user's numbered choice from a saved candidate list."""
        events = state.data.get("events")
        if state.action not in (SELECT_EVENT_TO_DELETE, SELECT_EVENT_TO_EDIT) or not isinstance(
            events, list
        ):
            logger.warning(f"Unsupported calendar follow-up action {state.action!r}")
            return WorkflowResult.fail(
                "That conversation can no longer be continued. Please start over."
            )

        text = unicodedata.normalize("NFKC", reply).strip()
        if not _INDEX_REPLY.fullmatch(text):
            return WorkflowResult.follow_up(
                "Please reply with a number. Type キャンセル to cancel.",
                action=state.action,
                state=state.data,
                step=state.step,
                success=False,
            )
        index = int(text)
        if not 1 <= index <= len(events):
            return WorkflowResult.follow_up(
                f"Please reply with a number from 1 to {len(events)}.",
                action=state.action,
                state=state.data,
                step=state.step,
                success=False,
            )

        tool = "delete_event" if state.action == SELECT_EVENT_TO_DELETE else "update_event"
        changes = state.data.get("changes") or {}
        if changes:
            changes = self.pipeline.validator.sanitize(changes)
        return await self.apply(
            tool,
            events[index - 1],
            changes,
            state.data.get("calendar_id"),
            provider,
            trace,
        )

    async def apply(
        self,
        tool: str,
        event: Mapping[str, Any],
        changes: Mapping[str, Any],
        calendar_id: str | None,
        provider: CapabilityProvider,
        trace: TurnTrace,
    ) -> WorkflowResult:
        params: dict[str, Any] = {"eventId": event.get("id"), "calendarId": calendar_id}
        if tool == "update_event":
            params = {**changes, **params}
        operation: Operation = CALENDAR_OPERATIONS.parse(tool, params)
        response = await self.pipeline.run(provider, operation, trace)

        title = event_title(event)
        message = f'Deleted "{title}".' if tool == "delete_event" else f'Updated "{title}".'
        return WorkflowResult.ok(
            message,
            data={"workflow_id": CALENDAR_WORKFLOW_ID, "tool": tool, "result": response.data},
        )

    async def on_error(self, error: Exception, context: WorkflowContext) -> WorkflowResult:
        if isinstance(error, CapabilityExecutionError):
            return WorkflowResult.fail(format_calendar_error(error.code, error.error))
        return WorkflowResult.fail(describe_error(error))
