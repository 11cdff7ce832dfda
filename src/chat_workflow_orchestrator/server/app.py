"""FastAPI app factory.

Endpoints are thin wrappers over :class:`Orchestrator`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from chat_workflow_orchestrator import __version__
from chat_workflow_orchestrator.core.config import OrchestratorConfig
from chat_workflow_orchestrator.core.orchestrator import Orchestrator
from chat_workflow_orchestrator.server.models import (
    ApiWorkflow,
    ApiWorkflowResult,
    MessageRequest,
    MessageResponse,
    SweepResponse,
)
from chat_workflow_orchestrator.workflows.types import IncomingMessage

logger = logging.getLogger(__name__)


async def _sweep_forever(orchestrator: Orchestrator, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            report = await orchestrator.sweep()
        except Exception:
            logger.exception("Maintenance sweep failed")
            continue
        if report.expired_states or report.reminders_sent:
            logger.info("Maintenance sweep completed", extra=report.to_json())


def create_app(
    orchestrator: Orchestrator | None = None, *, config: OrchestratorConfig | None = None
) -> FastAPI:
    """Build the API around ``orchestrator``.

    When no orchestrator is given, one is created from ``config`` (or the
    environment) and closed when the app shuts down.
    """
    owned = orchestrator is None
    orch = orchestrator or Orchestrator(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = asyncio.create_task(
            _sweep_forever(orch, orch.config.state.sweep_interval_seconds)
        )
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            if owned:
                await orch.aclose()

    app = FastAPI(
        title="Chat Workflow Orchestrator",
        version=__version__,
        description="REST API over the chat workflow orchestration core.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Expose the orchestrator for request handlers that want to read it.
    app.state.orchestrator = orch

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/workflows", response_model=list[ApiWorkflow])
    def list_workflows() -> list[ApiWorkflow]:
        return [ApiWorkflow.model_validate(d.to_json()) for d in orch.registry.all()]

    @app.post("/api/v1/messages", response_model=MessageResponse)
    async def post_message(req: MessageRequest) -> MessageResponse:
        result = await orch.process_message(
            IncomingMessage(
                content=req.content,
                user_id=req.user_id,
                channel_id=req.channel_id,
                message_id=req.message_id,
            )
        )
        if result is None:
            return MessageResponse(handled=False)
        return MessageResponse(
            handled=True, result=ApiWorkflowResult.model_validate(result.to_json())
        )

    @app.post("/api/v1/maintenance/sweep", response_model=SweepResponse)
    async def sweep() -> SweepResponse:
        report = await orch.sweep()
        return SweepResponse(**report.to_json())

    return app
