"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class MessageRequest(BaseModel):
    content: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    message_id: str = ""


class ApiWorkflowResult(BaseModel):
    success: bool
    message: str
    data: Any = None
    require_follow_up: bool = False


class MessageResponse(BaseModel):
    handled: bool
    result: ApiWorkflowResult | None = None


class ApiWorkflow(BaseModel):
    id: str
    name: str
    description: str = ""
    triggers: list[str]
    required_capabilities: list[str] = Field(default_factory=list)


class SweepResponse(BaseModel):
    expired_states: int
    reminders_sent: int
