"""Core package initialization.

``Orchestrator`` lives in :mod:`chat_workflow_orchestrator.core.orchestrator`;
it is not imported here because it depends on every other subpackage.
"""

from chat_workflow_orchestrator.core.config import OrchestratorConfig

__all__ = [
    "OrchestratorConfig",
]
