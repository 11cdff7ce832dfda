"""Closed sets of supported tool operations per capability domain.

A tool selection is parsed into one variant of a discriminated union keyed
on ``tool``. Required parameters are declared per variant, so a selection
that lacks one is rejected before it reaches a connector.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from chat_workflow_orchestrator.workflows.errors import InvalidOperation


class Operation(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    tool: str

    def to_params(self) -> dict[str, Any]:
        """Return the JSON parameters sent to the connector."""
        return self.model_dump(mode="json", by_alias=True, exclude={"tool"}, exclude_none=True)


class PassthroughOperation(Operation):
    """A tool the provider advertises that has no dedicated variant."""

    params: dict[str, Any] = Field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        return dict(self.params)


NonEmpty = Annotated[str, Field(min_length=1)]

# Task tracker (Notion-style databases and pages)


class DatabaseParent(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    database_id: NonEmpty


class QueryDatabase(Operation):
    tool: Literal["queryDatabase"]
    database_id: NonEmpty
    filter: dict[str, Any] | None = None
    sorts: list[Any] | None = None
    start_cursor: str | None = None
    page_size: int | None = Field(default=None, gt=0, le=100)


class CreatePage(Operation):
    tool: Literal["createPage"]
    parent: DatabaseParent
    properties: dict[str, Any]
    children: list[Any] | None = None


class UpdatePage(Operation):
    tool: Literal["updatePage"]
    page_id: NonEmpty
    properties: dict[str, Any] | None = None
    archived: bool | None = None


class DeletePage(Operation):
    tool: Literal["deletePage"]
    page_id: NonEmpty


class RetrievePage(Operation):
    tool: Literal["retrievePage"]
    page_id: NonEmpty


class RetrieveDatabase(Operation):
    tool: Literal["retrieveDatabase"]
    database_id: NonEmpty


TaskOperation = Annotated[
    Union[QueryDatabase, CreatePage, UpdatePage, DeletePage, RetrievePage, RetrieveDatabase],
    Field(discriminator="tool"),
]

# Calendar (Google Calendar-style events)

EventTime = Union[str, dict[str, Any]]


class ListEvents(Operation):
    tool: Literal["list_events"]
    calendar_id: str | None = Field(default=None, alias="calendarId")
    time_min: str | None = Field(default=None, alias="timeMin")
    time_max: str | None = Field(default=None, alias="timeMax")
    query: str | None = Field(default=None, alias="q")
    max_results: int | None = Field(default=None, gt=0, alias="maxResults")


class GetEvent(Operation):
    tool: Literal["get_event"]
    event_id: NonEmpty = Field(alias="eventId")
    calendar_id: str | None = Field(default=None, alias="calendarId")


class CreateEvent(Operation):
    tool: Literal["create_event"]
    summary: NonEmpty
    start: EventTime
    end: EventTime
    description: str | None = None
    location: str | None = None
    attendees: list[Any] | None = None
    calendar_id: str | None = Field(default=None, alias="calendarId")


class UpdateEvent(Operation):
    tool: Literal["update_event"]
    event_id: NonEmpty = Field(alias="eventId")
    summary: str | None = None
    start: EventTime | None = None
    end: EventTime | None = None
    description: str | None = None
    location: str | None = None
    calendar_id: str | None = Field(default=None, alias="calendarId")


class DeleteEvent(Operation):
    tool: Literal["delete_event"]
    event_id: NonEmpty = Field(alias="eventId")
    calendar_id: str | None = Field(default=None, alias="calendarId")


CalendarOperation = Annotated[
    Union[ListEvents, GetEvent, CreateEvent, UpdateEvent, DeleteEvent],
    Field(discriminator="tool"),
]


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"][1:]) or "parameters"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


@dataclass(frozen=True)
class OperationSet:
    """The closed operation union of one capability domain."""

    domain: str
    adapter: TypeAdapter[Any]
    tools: frozenset[str]

    def parse(
        self,
        tool: str,
        params: Mapping[str, Any],
        *,
        advertised: Iterable[str] = (),
    ) -> Operation:
        """Build a typed operation from a (tool, parameters) selection.

        Raises:
            InvalidOperation: If required parameters are missing or the tool is
                neither part of this domain nor advertised by the provider.
        """
        if tool in self.tools:
            try:
                return self.adapter.validate_python({**params, "tool": tool})
            except ValidationError as e:
                raise InvalidOperation(tool, _describe_validation_error(e)) from e
        if tool in set(advertised):
            return PassthroughOperation(tool=tool, params=dict(params))
        raise InvalidOperation(tool, f"not a supported {self.domain} operation")


TASK_OPERATIONS = OperationSet(
    domain="tasks",
    adapter=TypeAdapter(TaskOperation),
    tools=frozenset(
        {
            "queryDatabase",
            "createPage",
            "updatePage",
            "deletePage",
            "retrievePage",
            "retrieveDatabase",
        }
    ),
)

CALENDAR_OPERATIONS = OperationSet(
    domain="calendar",
    adapter=TypeAdapter(CalendarOperation),
    tools=frozenset({"list_events", "get_event", "create_event", "update_event", "delete_event"}),
)
