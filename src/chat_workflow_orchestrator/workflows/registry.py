"""Registry of workflow definitions and trigger matching."""

from __future__ import annotations

import logging
import re

from chat_workflow_orchestrator.workflows.types import WorkflowDefinition

logger = logging.getLogger(__name__)

PATTERN_PREFIX = "/"
PATTERN_SUFFIX = "/i"


def is_pattern_trigger(trigger: str) -> bool:
    """Return True for delimited pattern triggers such as ``/予定.*削除/i``."""
    return (
        len(trigger) > len(PATTERN_PREFIX) + len(PATTERN_SUFFIX)
        and trigger.startswith(PATTERN_PREFIX)
        and trigger.endswith(PATTERN_SUFFIX)
    )


def compile_trigger(trigger: str) -> re.Pattern[str] | None:
    """Compile a pattern trigger; invalid patterns are logged and yield None."""
    source = trigger[len(PATTERN_PREFIX) : -len(PATTERN_SUFFIX)]
    try:
        return re.compile(source, re.IGNORECASE)
    except re.error as e:
        logger.error(f"Invalid trigger pattern {trigger!r}: {e}")
        return None


class WorkflowRegistry:
    """Holds workflow definitions in registration order.

    Matching is first-match-wins: the registration order is the priority.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}
        self._patterns: dict[str, re.Pattern[str] | None] = {}

    def register(self, definition: WorkflowDefinition) -> None:
        if definition.id in self._workflows:
            logger.warning(
                f"Workflow {definition.id!r} is already registered; overwriting",
                extra={"workflow_id": definition.id},
            )
        self._workflows[definition.id] = definition
        for trigger in definition.triggers:
            if is_pattern_trigger(trigger) and trigger not in self._patterns:
                self._patterns[trigger] = compile_trigger(trigger)
        logger.info(f"Registered workflow {definition.id!r} ({definition.name})")

    def get(self, workflow_id: str) -> WorkflowDefinition | None:
        return self._workflows.get(workflow_id)

    def remove(self, workflow_id: str) -> bool:
        if self._workflows.pop(workflow_id, None) is None:
            logger.warning(f"Workflow {workflow_id!r} is not registered")
            return False
        logger.info(f"Removed workflow {workflow_id!r}")
        return True

    def clear(self) -> None:
        self._workflows.clear()

    def all(self) -> list[WorkflowDefinition]:
        """Return every definition in priority order."""
        return list(self._workflows.values())

    def __len__(self) -> int:
        return len(self._workflows)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def _matches(self, trigger: str, message: str, lowered: str) -> bool:
        if is_pattern_trigger(trigger):
            pattern = self._patterns.get(trigger)
            return pattern is not None and pattern.search(message) is not None
        return trigger.lower() in lowered

    def find_by_trigger(self, message: str) -> WorkflowDefinition | None:
        """Return the first registered workflow with a trigger matching ``message``."""
        lowered = message.lower()
        for definition in self._workflows.values():
            if any(self._matches(t, message, lowered) for t in definition.triggers):
                logger.debug(f"Message matched workflow {definition.id!r}")
                return definition
        return None
