"""Models for persisted conversational state."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class WorkflowState(BaseModel):
    """In-flight state of a multi-turn workflow.

    One state exists per (user, channel) pair. ``timestamp`` is set by the
    state store on every write and drives expiry.
    """

    workflow_id: str
    action: str
    step: int = 0
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StateRow(BaseModel):
    """A durable row: one per user key, ``state`` holding serialized JSON."""

    user_id: str
    state: str
    updated_at: datetime
