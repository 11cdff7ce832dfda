"""FastAPI server adapter for chat-workflow-orchestrator.

Business logic stays in `chat_workflow_orchestrator.workflows`; this package
only handles routing and the background maintenance loop.
"""

from __future__ import annotations

__all__ = ["create_app"]

from chat_workflow_orchestrator.server.app import create_app
