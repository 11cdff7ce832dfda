"""Unit tests for the calendar workflow and its event-selection follow-up."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
from conftest import (
    CALENDAR_TOOLS,
    FakeCapabilityProvider,
    FakeClock,
    ScriptedLLM,
    make_executor,
    message,
)

from chat_workflow_orchestrator.capabilities.provider import CapabilityResponse
from chat_workflow_orchestrator.llm.tool_selector import ToolSelector
from chat_workflow_orchestrator.state.models import WorkflowState
from chat_workflow_orchestrator.workflows.calendar import (
    CALENDAR_CAPABILITY,
    SELECT_EVENT_TO_DELETE,
    SELECT_EVENT_TO_EDIT,
    CalendarWorkflow,
    extract_date_hint,
)
from chat_workflow_orchestrator.workflows.executor import WorkflowExecutor

TODAY = date(2026, 10, 19)


def event(event_id: str, summary: str, start: str, end: str) -> dict[str, Any]:
    return {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
    }


MEETINGS = [
    event("ev-1", "定例会議", "2026-10-20T10:00:00+00:00", "2026-10-20T11:00:00+00:00"),
    event("ev-2", "採用面接", "2026-10-20T14:00:00+00:00", "2026-10-20T15:00:00+00:00"),
]


def build(
    llm: ScriptedLLM, provider: FakeCapabilityProvider, clock: FakeClock
) -> WorkflowExecutor:
    workflow = CalendarWorkflow(ToolSelector(llm), calendar_id="team", clock=clock)
    return make_executor(
        workflow.definition(), capabilities={CALENDAR_CAPABILITY: provider}, clock=clock
    )


def listing(*events: dict[str, Any]) -> CapabilityResponse:
    return CapabilityResponse(success=True, data={"items": list(events)})


class TestDateHint:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("今日の予定", date(2026, 10, 19)),
            ("明日の予定", date(2026, 10, 20)),
            ("明後日の会議", date(2026, 10, 21)),
            ("昨日の打ち合わせ", date(2026, 10, 18)),
            ("12月3日の予定", date(2026, 12, 3)),
            ("1月5日の予定", date(2027, 1, 5)),
            ("来週の予定", date(2026, 10, 26)),
            ("予定を教えて", None),
        ],
    )
    def test_relative_expressions(self, query: str, expected: date | None) -> None:
        assert extract_date_hint(query, TODAY) == expected

    def test_day_after_tomorrow_is_not_read_as_tomorrow(self) -> None:
        assert extract_date_hint("明後日", TODAY) == date(2026, 10, 21)

    def test_invalid_calendar_date_gives_no_hint(self) -> None:
        assert extract_date_hint("2月30日の予定", TODAY) is None


@pytest.mark.asyncio
async def test_list_events_uses_configured_calendar(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "list_events", "parameters": {"timeMin": "2026-10-20T00:00:00Z"}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing(*MEETINGS)})

    result = await build(llm, provider, clock).process_message(message("明日の予定"))

    assert result.success is True
    assert result.message.splitlines()[0] == "Events:"
    assert "1. 定例会議 - 2026-10-20 10:00-11:00" in result.message
    assert provider.calls == [
        ("list_events", {"calendarId": "team", "timeMin": "2026-10-20T00:00:00Z"})
    ]
    assert "Date referred to in the request: 2026-10-20." in llm.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_empty_listing_reports_no_events(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "list_events", "parameters": {}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing()})

    result = await build(llm, provider, clock).process_message(message("今週の予定"))

    assert result.success is True
    assert result.message == "No events found for that period."


@pytest.mark.asyncio
async def test_delete_with_several_candidates_asks_which_one(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing(*MEETINGS)})
    executor = build(llm, provider, clock)

    result = await executor.process_message(message("明日の予定を削除して"))

    assert result.success is True
    assert result.require_follow_up is True
    assert "Which one should I delete?" in result.message
    assert "2. 採用面接" in result.message
    tool, params = provider.calls[0]
    assert tool == "list_events"
    assert params == {
        "calendarId": "team",
        "timeMin": "2026-10-20T00:00:00Z",
        "timeMax": "2026-10-21T00:00:00Z",
        "maxResults": 10,
    }

    state = await executor.state_store.get("user-1:channel-1")
    assert state is not None
    assert state.action == SELECT_EVENT_TO_DELETE
    assert [e["id"] for e in state.data["events"]] == ["ev-1", "ev-2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["2", "２", " 2 "])
async def test_numeric_reply_deletes_chosen_event(clock: FakeClock, reply: str) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing(*MEETINGS)})
    executor = build(llm, provider, clock)
    await executor.process_message(message("明日の予定を削除して"))

    result = await executor.process_message(message(reply))

    assert result.success is True
    assert result.message == 'Deleted "採用面接".'
    assert provider.calls[-1] == ("delete_event", {"eventId": "ev-2", "calendarId": "team"})
    assert await executor.state_store.get("user-1:channel-1") is None
    # The reply is not routed through tool selection.
    assert len(llm.calls) == 1


@pytest.mark.asyncio
async def test_non_numeric_reply_keeps_state(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing(*MEETINGS)})
    executor = build(llm, provider, clock)
    await executor.process_message(message("明日の予定を削除して"))

    result = await executor.process_message(message("面接のほう"))

    assert result.success is False
    assert result.require_follow_up is True
    assert "reply with a number" in result.message
    state = await executor.state_store.get("user-1:channel-1")
    assert state is not None and state.action == SELECT_EVENT_TO_DELETE

    out_of_range = await executor.process_message(message("5"))
    assert out_of_range.message == "Please reply with a number from 1 to 2."
    assert [c[0] for c in provider.calls] == ["list_events"]


@pytest.mark.asyncio
async def test_cancel_during_selection(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing(*MEETINGS)})
    executor = build(llm, provider, clock)
    await executor.process_message(message("明日の予定を削除して"))

    result = await executor.process_message(message("キャンセル"))

    assert result.success is True
    assert await executor.state_store.get("user-1:channel-1") is None
    assert [c[0] for c in provider.calls] == ["list_events"]


@pytest.mark.asyncio
async def test_single_candidate_is_deleted_directly(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {"q": "定例"}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing(MEETINGS[0])})
    executor = build(llm, provider, clock)

    result = await executor.process_message(message("定例の予定を削除"))

    assert result.require_follow_up is False
    assert result.message == 'Deleted "定例会議".'
    assert provider.calls[0] == (
        "list_events",
        {"calendarId": "team", "q": "定例", "maxResults": 10},
    )
    assert provider.calls[1] == ("delete_event", {"eventId": "ev-1", "calendarId": "team"})


@pytest.mark.asyncio
async def test_no_candidates_fails(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {"q": "存在しない"}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS, {"list_events": listing()})

    result = await build(llm, provider, clock).process_message(message("予定を削除"))

    assert result.success is False
    assert result.message == "No matching events were found."


@pytest.mark.asyncio
async def test_edit_applies_stored_changes_to_chosen_event(clock: FakeClock) -> None:
    llm = ScriptedLLM(
        {"tool": "update_event", "parameters": {"location": "会議室B", "summary": "定例会議 移動後"}}
    )
    provider = FakeCapabilityProvider(
        CALENDAR_TOOLS,
        {"list_events": listing(*MEETINGS)},
    )
    executor = build(llm, provider, clock)

    first = await executor.process_message(message("明日の予定を変更して"))
    assert "Which one should I edit?" in first.message
    state = await executor.state_store.get("user-1:channel-1")
    assert state.action == SELECT_EVENT_TO_EDIT
    assert state.data["changes"] == {"summary": "定例会議 移動後", "location": "会議室B"}

    result = await executor.process_message(message("1"))

    assert result.message == 'Updated "定例会議".'
    assert provider.calls[-1] == (
        "update_event",
        {
            "eventId": "ev-1",
            "calendarId": "team",
            "summary": "定例会議 移動後",
            "location": "会議室B",
        },
    )


@pytest.mark.asyncio
async def test_event_id_given_skips_candidate_search(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "delete_event", "parameters": {"eventId": "ev-9"}})
    provider = FakeCapabilityProvider(CALENDAR_TOOLS)

    result = await build(llm, provider, clock).process_message(message("予定を削除 ev-9"))

    assert result.message == "Deleted the event."
    assert provider.calls == [("delete_event", {"eventId": "ev-9", "calendarId": "team"})]


@pytest.mark.asyncio
async def test_permission_error_maps_to_calendar_message(clock: FakeClock) -> None:
    llm = ScriptedLLM({"tool": "list_events", "parameters": {}})
    provider = FakeCapabilityProvider(
        CALENDAR_TOOLS,
        {"list_events": CapabilityResponse(success=False, error="403", code="PERMISSION_DENIED")},
    )

    result = await build(llm, provider, clock).process_message(message("カレンダーを見せて"))

    assert result.success is False
    assert "sharing settings" in result.message


@pytest.mark.asyncio
async def test_unsupported_saved_action_asks_user_to_start_over(clock: FakeClock) -> None:
    llm = ScriptedLLM()
    provider = FakeCapabilityProvider(CALENDAR_TOOLS)
    executor = build(llm, provider, clock)
    await executor.state_store.save(
        "user-1:channel-1",
        WorkflowState(workflow_id="calendar", action="select_time_slot", step=1, data={}),
    )

    result = await executor.process_message(message("1"))

    assert result.success is False
    assert result.message == "That conversation can no longer be continued. Please start over."
    assert provider.calls == []
    assert await executor.state_store.get("user-1:channel-1") is None
