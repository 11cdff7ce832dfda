"""Expiring store for in-flight workflow state."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError

from chat_workflow_orchestrator.core.config import StateConfig
from chat_workflow_orchestrator.state.backends import (
    InMemoryStateBackend,
    JsonFileStateBackend,
    StateBackend,
)
from chat_workflow_orchestrator.state.models import StateRow, WorkflowState
from chat_workflow_orchestrator.workflows.errors import StateCorrupt

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class StateStore:
    """Per-conversation workflow state with a fixed expiry window.

    Reads consult the in-process cache first and fall back to the durable
    backend, repopulating the cache. A state older than the TTL (measured
    from its last write) is treated as absent and deleted on read.

    Durable failures never reach the caller: the cache keeps the current turn
    usable and the failure is logged.
    """

    def __init__(
        self,
        backend: StateBackend,
        *,
        ttl: timedelta = timedelta(minutes=30),
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the state store.

        Args:
            backend: Durable row store.
            ttl: Lifetime of a state after its last write.
            clock: Source of the current time (tests inject a fake).
        """
        self.backend = backend
        self.ttl = ttl
        self._clock = clock
        self._cache: dict[str, WorkflowState] = {}

    @classmethod
    def from_config(cls, config: StateConfig, *, clock: Clock = utc_now) -> StateStore:
        backend: StateBackend
        if config.backend == "memory":
            backend = InMemoryStateBackend()
        else:
            backend = JsonFileStateBackend(config.state_rows_file)
        logger.info(f"State store initialized with {config.backend} backend")
        return cls(backend, ttl=timedelta(minutes=config.ttl_minutes), clock=clock)

    def _is_expired(self, state: WorkflowState, now: datetime) -> bool:
        return now - state.timestamp > self.ttl

    def _decode(self, row: StateRow) -> WorkflowState:
        try:
            return WorkflowState.model_validate_json(row.state)
        except ValidationError as e:
            raise StateCorrupt(row.user_id, str(e)) from e

    async def save(self, key: str, state: WorkflowState) -> WorkflowState:
        """Store ``state`` for ``key``, stamping it with the current time.

        Returns:
            The stored state, including its new timestamp.
        """
        now = self._clock()
        stamped = state.model_copy(update={"timestamp": now})
        self._cache[key] = stamped

        row = StateRow(user_id=key, state=stamped.model_dump_json(), updated_at=now)
        try:
            await self.backend.upsert(row)
        except Exception as e:
            logger.error(
                f"Failed to persist workflow state: {e}",
                extra={"key": key, "workflow_id": state.workflow_id},
            )
        return stamped

    async def get(self, key: str) -> WorkflowState | None:
        state = self._cache.get(key)
        if state is None:
            try:
                row = await self.backend.select(key)
            except Exception as e:
                logger.error(f"Failed to load workflow state: {e}", extra={"key": key})
                return None
            if row is None:
                return None
            try:
                state = self._decode(row)
            except StateCorrupt as e:
                logger.error(str(e), extra={"key": key})
                await self.clear(key)
                return None
            self._cache[key] = state

        if self._is_expired(state, self._clock()):
            logger.info("Workflow state expired", extra={"key": key})
            await self.clear(key)
            return None
        return state

    async def clear(self, key: str) -> None:
        self._cache.pop(key, None)
        try:
            await self.backend.delete(key)
        except Exception as e:
            logger.error(f"Failed to delete workflow state: {e}", extra={"key": key})

    async def sweep_expired(self) -> int:
        """Delete every state whose expiry has already passed.

        Only rows that satisfy the expiry predicate at query time are
        removed, so this is safe alongside concurrent saves.

        Returns:
            Number of durable rows removed.
        """
        now = self._clock()
        removed = await self.backend.delete_older_than(now - self.ttl)
        for key in [k for k, s in self._cache.items() if self._is_expired(s, now)]:
            del self._cache[key]
        if removed:
            logger.info(f"Swept {removed} expired workflow states")
        return removed
