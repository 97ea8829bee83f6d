# itinerary_workflow/tools/maintenance.py
"""
Operator maintenance tools: session statistics and explicit cleanup.
"""

import logging

from itinerary_workflow.models.responses import CleanupResponse, SessionStats
from itinerary_workflow.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)


async def session_stats(repository: SessionRepository) -> SessionStats:
    """Count live sessions per status."""
    stats = await repository.get_session_stats()
    logger.info(f"Session stats: {stats.model_dump()}")
    return stats


async def cleanup_sessions(repository: SessionRepository) -> CleanupResponse:
    """
    Run an explicit expired-session sweep.

    Returns:
        CleanupResponse with the number of keys removed
    """
    removed = await repository.cleanup_expired()
    return CleanupResponse(removed=removed)
