"""Workflows package initialization.

Only the dependency-free building blocks are re-exported here. Import the
executor and the concrete workflows from their modules.
"""

from chat_workflow_orchestrator.workflows.errors import (
    CapabilityExecutionError,
    DeepPatternDetected,
    InvalidOperation,
    JSONParseFailed,
    MissingCapability,
    NoToolsAvailable,
    RawPatternDetected,
    SelectionParseError,
    StateCorrupt,
    UnknownAssignee,
    UnsafeContentError,
    WorkflowError,
)
from chat_workflow_orchestrator.workflows.registry import WorkflowRegistry
from chat_workflow_orchestrator.workflows.safety import SafetyValidator
from chat_workflow_orchestrator.workflows.types import (
    IncomingMessage,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowResult,
)

__all__ = [
    "CapabilityExecutionError",
    "DeepPatternDetected",
    "IncomingMessage",
    "InvalidOperation",
    "JSONParseFailed",
    "MissingCapability",
    "NoToolsAvailable",
    "RawPatternDetected",
    "SafetyValidator",
    "SelectionParseError",
    "StateCorrupt",
    "UnknownAssignee",
    "UnsafeContentError",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowError",
    "WorkflowRegistry",
    "WorkflowResult",
]
