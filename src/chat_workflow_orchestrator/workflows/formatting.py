"""User-facing messages for workflow results and failures."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from chat_workflow_orchestrator.workflows.errors import (
    CapabilityExecutionError,
    InvalidOperation,
    MissingCapability,
    NoToolsAvailable,
    SelectionParseError,
    UnknownAssignee,
    UnsafeContentError,
)

NO_ITEMS_MESSAGE = "No matching items found."
NO_EVENTS_MESSAGE = "No events found for that period."
GENERIC_FAILURE_MESSAGE = "Something went wrong while processing your request. Please try again."

_TASK_CODE_MESSAGES = {
    "PERMISSION_DENIED": "The assistant does not have access to the task database.",
    "NOT_FOUND": "The requested task was not found. Check the title or ID and try again.",
    "INVALID_ARGUMENT": "The task details are not valid. Please check them and try again.",
}

_CALENDAR_CODE_MESSAGES = {
    "PERMISSION_DENIED": "The assistant does not have access to the calendar. Check its sharing settings.",
    "NOT_FOUND": "The requested event or time was not found. Please check the details.",
    "ALREADY_EXISTS": "An event already exists at that time. Please choose another time.",
    "INVALID_ARGUMENT": "The event details are not valid. Check the date, time and details.",
}


def describe_error(error: Exception) -> str:
    """Map a turn failure to a message the user can act on."""
    if isinstance(error, UnsafeContentError):
        return f"The request was blocked because it contained unsafe content. {error.suggestion}"
    if isinstance(error, SelectionParseError):
        return "I could not work out which operation to run. Please rephrase your request."
    if isinstance(error, InvalidOperation):
        return f"The {error.tool} request is missing information: {error.reason}"
    if isinstance(error, CapabilityExecutionError):
        return f"The {error.tool} operation failed: {error.error}"
    if isinstance(error, MissingCapability):
        return f"The {error.capability_id} service is not available right now."
    if isinstance(error, UnknownAssignee):
        return f'No staff member named "{error.name}" was found.'
    if isinstance(error, NoToolsAvailable):
        return "No operations are available for this service right now."
    return GENERIC_FAILURE_MESSAGE


def format_task_error(code: str | None, error: str) -> str:
    return _TASK_CODE_MESSAGES.get(code or "", f"A task operation failed: {error}")


def format_calendar_error(code: str | None, error: str) -> str:
    return _CALENDAR_CODE_MESSAGES.get(code or "", f"A calendar operation failed: {error}")


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO date or date-time, also accepting calendar ``{dateTime|date}`` objects."""
    if isinstance(value, Mapping):
        value = value.get("dateTime") or value.get("date") or value.get("start")
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value: Any) -> str:
    parsed = parse_datetime(value)
    if parsed is None:
        return str(value) if value else ""
    if isinstance(value, str) and "T" not in value:
        return parsed.strftime("%Y-%m-%d")
    return parsed.strftime("%Y-%m-%d %H:%M")


# Tasks


@dataclass(frozen=True, slots=True)
class TaskSummary:
    id: str | None
    title: str
    due: str | None = None
    assignee: str | None = None
    status: str | None = None


def _plain_text(items: Any) -> str:
    if not isinstance(items, list):
        return ""
    return "".join(
        str(i.get("plain_text") or i.get("text", {}).get("content", ""))
        for i in items
        if isinstance(i, Mapping)
    )


def _property_value(prop: Mapping[str, Any]) -> str | None:
    kind = prop.get("type")
    if kind == "title":
        return _plain_text(prop.get("title")) or None
    if kind == "rich_text":
        return _plain_text(prop.get("rich_text")) or None
    if kind == "date":
        start = (prop.get("date") or {}).get("start")
        return start or None
    if kind in ("status", "select"):
        return (prop.get(kind) or {}).get("name")
    if kind == "people":
        names = [p.get("name") or p.get("id") for p in prop.get("people") or []]
        return ", ".join(n for n in names if n) or None
    return None


def task_summary(row: Mapping[str, Any]) -> TaskSummary:
    """Summarise a task row, either a database page or an already-flat record."""
    properties = row.get("properties")
    if not isinstance(properties, Mapping):
        assignee = row.get("assignee")
        if isinstance(assignee, Mapping):
            assignee = assignee.get("name") or assignee.get("id")
        return TaskSummary(
            id=row.get("id"),
            title=str(row.get("title") or "Untitled"),
            due=row.get("dueDate"),
            assignee=assignee,
            status=row.get("status"),
        )

    title = due = assignee = status = None
    for prop in properties.values():
        if not isinstance(prop, Mapping):
            continue
        kind = prop.get("type")
        value = _property_value(prop)
        if kind == "title" and title is None:
            title = value
        elif kind == "date" and due is None:
            due = value
        elif kind == "people" and assignee is None:
            assignee = value
        elif kind in ("status", "select") and status is None:
            status = value
    return TaskSummary(
        id=row.get("id"), title=title or "Untitled", due=due, assignee=assignee, status=status
    )


def result_rows(data: Any) -> list[Mapping[str, Any]] | None:
    """Return the rows of a list-shaped result, or None if ``data`` is not a list result."""
    if isinstance(data, Mapping) and isinstance(data.get("results"), list):
        data = data["results"]
    if isinstance(data, list):
        return [r for r in data if isinstance(r, Mapping)]
    return None


def format_task_list(rows: Sequence[Mapping[str, Any]]) -> str:
    if not rows:
        return NO_ITEMS_MESSAGE
    lines = [f"Tasks ({len(rows)}):"]
    for index, row in enumerate(rows, start=1):
        task = task_summary(row)
        line = f"{index}. {task.title}"
        if task.due:
            line += f" (due {format_date(task.due)})"
        lines.append(line)
        if task.assignee:
            lines.append(f"   Assignee: {task.assignee}")
        if task.status:
            lines.append(f"   Status: {task.status}")
    return "\n".join(lines)


def format_task_detail(row: Mapping[str, Any]) -> str:
    task = task_summary(row)
    lines = ["Task details", f"Title: {task.title}"]
    if task.due:
        lines.append(f"Due: {format_date(task.due)}")
    if task.assignee:
        lines.append(f"Assignee: {task.assignee}")
    if task.status:
        lines.append(f"Status: {task.status}")
    if task.id:
        lines.append(f"ID: {task.id}")
    return "\n".join(lines)


def format_task_result(tool: str, data: Any) -> str:
    rows = result_rows(data)
    if rows is not None:
        return format_task_list(rows)
    row = data if isinstance(data, Mapping) else {}
    title = task_summary(row).title
    if tool == "createPage":
        due = task_summary(row).due
        message = f'Created task "{title}".'
        return f"{message}\nDue: {format_date(due)}" if due else message
    if tool == "updatePage":
        return f'Updated task "{title}".'
    if tool == "deletePage":
        return f'Deleted task "{title}".'
    if tool == "retrievePage":
        return format_task_detail(row)
    if tool == "retrieveDatabase":
        name = _plain_text(row.get("title")) or row.get("id") or "database"
        return f"Task database: {name}"
    return f"Operation completed: {json.dumps(data, ensure_ascii=False, default=str)}"


# Calendar


def event_title(event: Mapping[str, Any]) -> str:
    return str(event.get("summary") or event.get("title") or "(no title)")


def format_event_time(start: Any, end: Any) -> str:
    begin = parse_datetime(start)
    finish = parse_datetime(end)
    if begin is None or finish is None:
        return "time unknown"
    if begin.date() == finish.date():
        return f"{begin:%Y-%m-%d %H:%M}-{finish:%H:%M}"
    return f"{begin:%Y-%m-%d %H:%M} - {finish:%Y-%m-%d %H:%M}"


def event_rows(data: Any) -> list[Mapping[str, Any]]:
    if isinstance(data, Mapping):
        data = data.get("items", data.get("events", data.get("results", [])))
    if not isinstance(data, list):
        return []
    return [e for e in data if isinstance(e, Mapping)]


def format_event_choices(events: Sequence[Mapping[str, Any]]) -> str:
    return "\n".join(
        f"{i}. {event_title(e)} - {format_event_time(e.get('start'), e.get('end'))}"
        for i, e in enumerate(events, start=1)
    )


def format_event_list(events: Sequence[Mapping[str, Any]]) -> str:
    if not events:
        return NO_EVENTS_MESSAGE
    return "Events:\n" + format_event_choices(events)


def format_event_detail(event: Mapping[str, Any]) -> str:
    lines = [
        f"Event: {event_title(event)}",
        f"When: {format_event_time(event.get('start'), event.get('end'))}",
    ]
    if event.get("location"):
        lines.append(f"Where: {event['location']}")
    if event.get("description"):
        lines.append(f"Details: {event['description']}")
    return "\n".join(lines)


def format_calendar_result(tool: str, data: Any) -> str:
    if tool == "list_events":
        return format_event_list(event_rows(data))
    event = data if isinstance(data, Mapping) else {}
    if tool == "get_event":
        return format_event_detail(event)
    if tool == "create_event":
        when = format_event_time(event.get("start"), event.get("end"))
        return f'Created event "{event_title(event)}" at {when}.'
    if tool == "update_event":
        return f'Updated event "{event_title(event)}".'
    if tool == "delete_event":
        return "Deleted the event."
    return f"Operation completed: {json.dumps(data, ensure_ascii=False, default=str)}"
