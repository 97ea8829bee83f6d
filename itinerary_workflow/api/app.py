# itinerary_workflow/api/app.py
"""
HTTP surface: status queries and the Server-Sent Events progress stream.

Read-only. Session writes come from the dispatch engine through
SessionRepository, never through these routes.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from itinerary_workflow.background.broadcaster import ProgressBroadcaster
from itinerary_workflow.background.lifecycle import ServiceLifecycle
from itinerary_workflow.exceptions import InvalidWorkflowId, StoreUnavailable
from itinerary_workflow.tools.maintenance import session_stats
from itinerary_workflow.validation.sanitize import sanitize_workflow_id

logger = logging.getLogger(__name__)

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_app(lifecycle: ServiceLifecycle) -> FastAPI:
    """
    Build the FastAPI application around a service lifecycle.

    The lifecycle is started and shut down with the app, which closes every
    open progress stream before the store connection goes away.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await lifecycle.startup()
        yield
        await lifecycle.shutdown()

    app = FastAPI(
        title="itinerary-workflow",
        description="Workflow session status and progress streaming",
        lifespan=lifespan,
    )
    app.state.lifecycle = lifecycle

    @app.exception_handler(InvalidWorkflowId)
    async def invalid_id_handler(request: Request, exc: InvalidWorkflowId):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        logger.error(f"Store unavailable while serving {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": str(exc)},
        )

    async def status_response(workflow_id: str) -> JSONResponse:
        snapshot = await lifecycle.status_service.get_status(workflow_id)
        if snapshot is None:
            return JSONResponse(status_code=404, content={"error": "Workflow not found"})
        return JSONResponse(
            content=snapshot.to_wire(), headers={"Cache-Control": "no-cache"}
        )

    def event_stream(workflow_id: str) -> StreamingResponse:
        broadcaster = lifecycle.open_broadcaster(workflow_id)
        return StreamingResponse(
            _sse_frames(broadcaster),
            media_type="text/event-stream",
            headers=_SSE_HEADERS,
        )

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/workflows/stats")
    async def stats() -> dict:
        result = await session_stats(lifecycle.repository)
        return result.to_wire()

    @app.get("/workflows/{workflow_id}/status")
    async def workflow_status(workflow_id: str):
        return await status_response(sanitize_workflow_id(workflow_id))

    @app.get("/workflows/{workflow_id}/events")
    async def workflow_events(workflow_id: str):
        return event_stream(sanitize_workflow_id(workflow_id))

    @app.get("/workflows/{workflow_id}/progress")
    async def workflow_progress(workflow_id: str, request: Request):
        """SSE when the client accepts text/event-stream, JSON snapshot otherwise."""
        workflow_id = sanitize_workflow_id(workflow_id)
        if "text/event-stream" in request.headers.get("accept", ""):
            return event_stream(workflow_id)
        return await status_response(workflow_id)

    return app


async def _sse_frames(broadcaster: ProgressBroadcaster) -> AsyncIterator[str]:
    """Frame broadcaster events for the wire; closes the broadcaster on disconnect."""
    try:
        async for event in broadcaster.stream():
            yield event.to_sse()
    finally:
        broadcaster.close()
