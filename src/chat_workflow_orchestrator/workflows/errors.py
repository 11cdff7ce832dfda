"""Typed errors raised while running a workflow turn.

Every error derives from :class:`WorkflowError`; the executor catches them at
its boundary and turns them into a failed ``WorkflowResult``.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for workflow failures."""


class StateCorrupt(WorkflowError):
    """A persisted workflow state could not be deserialized."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored state for {key!r} is corrupt: {reason}")
        self.key = key
        self.reason = reason


class SelectionParseError(WorkflowError):
    """The language model's selection could not be interpreted."""


class JSONParseFailed(SelectionParseError):
    """The language model's completion was not valid JSON."""

    def __init__(self, content: str, reason: str) -> None:
        super().__init__(f"Tool selection is not valid JSON: {reason}")
        self.content = content
        self.reason = reason


class NoToolsAvailable(WorkflowError):
    """The capability provider advertised no tools."""


class UnsafeContentError(WorkflowError):
    """Generated parameters contained code-like or environment-referencing text."""

    def __init__(self, message: str, pattern: str) -> None:
        super().__init__(message)
        self.pattern = pattern

    @property
    def suggestion(self) -> str:
        from chat_workflow_orchestrator.workflows.safety import get_error_suggestion

        return get_error_suggestion(self.pattern)


class RawPatternDetected(UnsafeContentError):
    """A call-like token was found in the raw completion before parsing."""

    def __init__(self, pattern: str, context: str) -> None:
        super().__init__(f"Call-like token {pattern!r} found in tool selection", pattern)
        self.context = context


class DeepPatternDetected(UnsafeContentError):
    """A forbidden construct was found inside the parsed parameter tree."""

    def __init__(self, pattern: str, path: str) -> None:
        location = path or "<root>"
        super().__init__(f"Forbidden content {pattern!r} at {location}", pattern)
        self.path = path


class InvalidOperation(WorkflowError):
    """A selection does not fit the domain's set of supported operations."""

    def __init__(self, tool: str, reason: str) -> None:
        super().__init__(f"Invalid {tool!r} operation: {reason}")
        self.tool = tool
        self.reason = reason


class CapabilityExecutionError(WorkflowError):
    """The external capability reported a failure."""

    def __init__(self, tool: str, error: str, code: str | None = None) -> None:
        super().__init__(f"{tool} failed: {error}")
        self.tool = tool
        self.error = error
        self.code = code


class MissingCapability(WorkflowError):
    """A workflow requires a capability that is not configured."""

    def __init__(self, capability_id: str) -> None:
        super().__init__(f"Capability {capability_id!r} is not available")
        self.capability_id = capability_id


class UnknownAssignee(WorkflowError):
    """A person named in a request could not be matched to a staff record."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No staff member matches {name!r}")
        self.name = name
