"""Durable due-date reminders for tasks.

Reminders are persisted with their fire time instead of being held as
in-process timers, so a restart followed by ``dispatch_due`` delivers any
reminder that became due while the process was down.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from chat_workflow_orchestrator.state.manager import Clock, utc_now

logger = logging.getLogger(__name__)


class ReminderRecord(BaseModel):
    reminder_id: str
    task_id: str
    title: str
    channel_id: str
    due_at: datetime
    fire_at: datetime
    label: str


class Notifier(Protocol):
    """Delivers reminder text to a chat channel."""

    async def send_message(self, channel_id: str, text: str) -> None: ...


class LoggingNotifier:
    """Notifier that only logs, used when no chat transport is attached."""

    async def send_message(self, channel_id: str, text: str) -> None:
        logger.info(text, extra={"channel_id": channel_id})


def offset_label(hours: int) -> str:
    if hours % 24 == 0:
        days = hours // 24
        return "1 day" if days == 1 else f"{days} days"
    return "1 hour" if hours == 1 else f"{hours} hours"


def reminder_text(record: ReminderRecord) -> str:
    return f'Reminder: "{record.title}" is due in {record.label} ({record.due_at:%Y-%m-%d %H:%M}).'


@dataclass
class ReminderStore:
    """Reminder rows persisted as a JSON list."""

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[ReminderRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.error(f"Reminder file {self.path} is not valid JSON; ignoring it")
            return []
        if not isinstance(raw, list):
            return []
        records: list[ReminderRecord] = []
        for item in raw:
            try:
                records.append(ReminderRecord.model_validate(item))
            except ValidationError:
                continue
        return records

    def _save_unlocked(self, records: list[ReminderRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in records]
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def list(self) -> list[ReminderRecord]:
        with self._lock:
            return self._load_unlocked()

    def replace_for_task(self, task_id: str, records: Iterable[ReminderRecord]) -> None:
        with self._lock:
            kept = [r for r in self._load_unlocked() if r.task_id != task_id]
            self._save_unlocked(kept + list(records))

    def delete(self, reminder_ids: Iterable[str]) -> int:
        ids = set(reminder_ids)
        with self._lock:
            records = self._load_unlocked()
            kept = [r for r in records if r.reminder_id not in ids]
            removed = len(records) - len(kept)
            if removed:
                self._save_unlocked(kept)
            return removed

    def delete_for_task(self, task_id: str) -> int:
        with self._lock:
            records = self._load_unlocked()
            kept = [r for r in records if r.task_id != task_id]
            removed = len(records) - len(kept)
            if removed:
                self._save_unlocked(kept)
            return removed


class ReminderService:
    """Schedules and dispatches task reminders.

    Args:
        store: Durable reminder rows.
        notifier: Chat transport used to deliver reminders.
        offsets_hours: Hours before the due time at which reminders fire.
        clock: Source of the current time.
    """

    def __init__(
        self,
        store: ReminderStore,
        notifier: Notifier,
        *,
        offsets_hours: Iterable[int] = (24, 3, 1),
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.offsets_hours = tuple(offsets_hours)
        self._clock = clock

    async def schedule(
        self, task_id: str, title: str, due_at: datetime, channel_id: str
    ) -> list[ReminderRecord]:
        """Persist one reminder per offset whose fire time is still ahead.

        Scheduling the same task again replaces its previous reminders.
        """
        now = self._clock()
        records = []
        for hours in self.offsets_hours:
            fire_at = due_at - timedelta(hours=hours)
            if fire_at <= now:
                continue
            records.append(
                ReminderRecord(
                    reminder_id=f"{task_id}_{hours}",
                    task_id=task_id,
                    title=title,
                    channel_id=channel_id,
                    due_at=due_at,
                    fire_at=fire_at,
                    label=offset_label(hours),
                )
            )
        await asyncio.to_thread(self.store.replace_for_task, task_id, records)
        logger.info(
            f"Scheduled {len(records)} reminders for task {task_id}",
            extra={"task_id": task_id, "due_at": due_at.isoformat()},
        )
        return records

    async def cancel(self, task_id: str) -> int:
        removed = await asyncio.to_thread(self.store.delete_for_task, task_id)
        if removed:
            logger.info(f"Cancelled {removed} reminders for task {task_id}")
        return removed

    async def pending(self) -> list[ReminderRecord]:
        records = await asyncio.to_thread(self.store.list)
        return sorted(records, key=lambda r: r.fire_at)

    async def dispatch_due(self, now: datetime | None = None) -> int:
        """Send every reminder whose fire time has passed.

        A reminder that fails to send stays stored for the next sweep.

        Returns:
            Number of reminders delivered.
        """
        now = now or self._clock()
        due = [r for r in await self.pending() if r.fire_at <= now]
        sent: list[str] = []
        for record in due:
            try:
                await self.notifier.send_message(record.channel_id, reminder_text(record))
            except Exception as e:
                logger.error(
                    f"Failed to send reminder {record.reminder_id}: {e}",
                    extra={"reminder_id": record.reminder_id},
                )
                continue
            sent.append(record.reminder_id)
        if sent:
            await asyncio.to_thread(self.store.delete, sent)
            logger.info(f"Dispatched {len(sent)} reminders")
        return len(sent)
