# itinerary_workflow/tools/check_status.py
"""
Status query implementation.

Single synchronous read of a workflow session, projected field-for-field into
a StatusSnapshot. No polling, no streaming.
"""

import logging

from itinerary_workflow.models.responses import StatusSnapshot
from itinerary_workflow.models.session import WorkflowSession
from itinerary_workflow.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)


def to_snapshot(session: WorkflowSession) -> StatusSnapshot:
    """Project a session onto the status response shape."""
    return StatusSnapshot(
        workflow_id=session.id,
        status=session.status.value,
        current_stage=session.current_stage.value,
        progress=session.progress,
        completed_steps=[step.value for step in session.completed_steps],
        started_at=session.started_at,
        completed_at=session.completed_at,
        processing_time=session.total_processing_time,
        error=session.error_message,
    )


async def check_status(
    workflow_id: str, repository: SessionRepository
) -> StatusSnapshot | None:
    """
    Check the status of a workflow run.

    Args:
        workflow_id: Workflow run id
        repository: Session repository

    Returns:
        StatusSnapshot, or None if the run is unknown or expired

    Raises:
        StoreUnavailable: If the store cannot be read
    """
    session = await repository.get_session(workflow_id)
    if session is None:
        logger.info(f"Status requested for unknown workflow {workflow_id}")
        return None
    return to_snapshot(session)


class StatusQueryService:
    """Status reads for clients that prefer request/response over a stream."""

    def __init__(self, repository: SessionRepository) -> None:
        self._repository = repository

    async def get_status(self, workflow_id: str) -> StatusSnapshot | None:
        return await check_status(workflow_id, self._repository)
