"""Durable row stores backing the state store.

Rows are addressed by user key and support upsert, select, delete and a
timestamp-bounded delete used by expiry sweeps.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from chat_workflow_orchestrator.state.models import StateRow

logger = logging.getLogger(__name__)


class StateBackend(ABC):
    """Durable upsert/select/delete store for state rows."""

    @abstractmethod
    async def upsert(self, row: StateRow) -> None: ...

    @abstractmethod
    async def select(self, user_id: str) -> StateRow | None: ...

    @abstractmethod
    async def delete(self, user_id: str) -> None: ...

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete rows whose ``updated_at`` is before ``cutoff``; return the count."""


class InMemoryStateBackend(StateBackend):
    """Non-persistent backend, useful for tests and single-process setups."""

    def __init__(self) -> None:
        self.rows: dict[str, StateRow] = {}

    async def upsert(self, row: StateRow) -> None:
        self.rows[row.user_id] = row

    async def select(self, user_id: str) -> StateRow | None:
        return self.rows.get(user_id)

    async def delete(self, user_id: str) -> None:
        self.rows.pop(user_id, None)

    async def delete_older_than(self, cutoff: datetime) -> int:
        expired = [key for key, row in self.rows.items() if row.updated_at < cutoff]
        for key in expired:
            del self.rows[key]
        return len(expired)


@dataclass
class JsonFileStateBackend(StateBackend):
    """Rows persisted as a JSON list in a single file.

    File access is serialized with a lock and runs in a worker thread so the
    event loop is not blocked.
    """

    path: Path

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def _load_unlocked(self) -> list[StateRow]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.error(f"State file {self.path} is not valid JSON; ignoring it")
            return []
        if not isinstance(raw, list):
            logger.error(f"State file {self.path} does not hold a list of rows; ignoring it")
            return []
        rows: list[StateRow] = []
        for item in raw:
            try:
                rows.append(StateRow.model_validate(item))
            except ValidationError:
                continue
        return rows

    def _save_unlocked(self, rows: list[StateRow]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in rows]
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def _upsert(self, row: StateRow) -> None:
        with self._lock:
            rows = [r for r in self._load_unlocked() if r.user_id != row.user_id]
            rows.append(row)
            self._save_unlocked(rows)

    def _select(self, user_id: str) -> StateRow | None:
        with self._lock:
            for row in self._load_unlocked():
                if row.user_id == user_id:
                    return row
            return None

    def _delete(self, user_id: str) -> None:
        with self._lock:
            rows = self._load_unlocked()
            kept = [r for r in rows if r.user_id != user_id]
            if len(kept) != len(rows):
                self._save_unlocked(kept)

    def _delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            rows = self._load_unlocked()
            kept = [r for r in rows if r.updated_at >= cutoff]
            removed = len(rows) - len(kept)
            if removed:
                self._save_unlocked(kept)
            return removed

    async def upsert(self, row: StateRow) -> None:
        await asyncio.to_thread(self._upsert, row)

    async def select(self, user_id: str) -> StateRow | None:
        return await asyncio.to_thread(self._select, user_id)

    async def delete(self, user_id: str) -> None:
        await asyncio.to_thread(self._delete, user_id)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await asyncio.to_thread(self._delete_older_than, cutoff)
