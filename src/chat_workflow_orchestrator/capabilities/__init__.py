"""Capabilities package initialization."""

from chat_workflow_orchestrator.capabilities.http_provider import HttpCapabilityProvider
from chat_workflow_orchestrator.capabilities.operations import (
    CALENDAR_OPERATIONS,
    TASK_OPERATIONS,
    Operation,
    OperationSet,
    PassthroughOperation,
)
from chat_workflow_orchestrator.capabilities.provider import (
    CapabilityProvider,
    CapabilityResponse,
    ToolDescriptor,
)

__all__ = [
    "CALENDAR_OPERATIONS",
    "TASK_OPERATIONS",
    "CapabilityProvider",
    "CapabilityResponse",
    "HttpCapabilityProvider",
    "Operation",
    "OperationSet",
    "PassthroughOperation",
    "ToolDescriptor",
]
