# itinerary_workflow/server.py
"""
FastMCP server instance with tool registration.

CRITICAL: configure_logging() is called first to prevent stdout pollution.
All logging goes to stderr as JSON.
"""

# Configure logging FIRST before any other imports
from itinerary_workflow.logging_config import configure_logging

configure_logging()

import logging

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from itinerary_workflow.background.lifecycle import ServiceLifecycle
from itinerary_workflow.config.loader import load_config
from itinerary_workflow.config.schema import WorkflowConfig
from itinerary_workflow.exceptions import InvalidWorkflowId, StoreUnavailable
from itinerary_workflow.tools.check_status import to_snapshot
from itinerary_workflow.tools.maintenance import cleanup_sessions as _cleanup_sessions
from itinerary_workflow.tools.maintenance import session_stats as _session_stats
from itinerary_workflow.validation.sanitize import sanitize_workflow_id

logger = logging.getLogger(__name__)

mcp = FastMCP("itinerary-workflow")

# Lifecycle manager (initialized by initialize_lifecycle)
_lifecycle: ServiceLifecycle | None = None


def get_lifecycle() -> ServiceLifecycle:
    """
    Get the service lifecycle.

    Raises:
        RuntimeError: If lifecycle not initialized
    """
    if _lifecycle is None:
        raise RuntimeError("Server lifecycle not initialized. Call initialize_lifecycle() first.")
    return _lifecycle


async def initialize_lifecycle(config: WorkflowConfig | None = None) -> ServiceLifecycle:
    """
    Initialize the service lifecycle (store client + connectivity check).

    Args:
        config: WorkflowConfig (loaded from the user config file if None)
    """
    global _lifecycle

    actual_config = config or load_config()
    # Import-time logging uses the default level; apply the configured one
    configure_logging(actual_config.logging.level)
    _lifecycle = ServiceLifecycle(actual_config)
    await _lifecycle.startup()
    logger.info(f"Lifecycle initialized: backend={actual_config.store.backend}")
    return _lifecycle


@mcp.tool()
async def check_status(workflow_id: str) -> dict:
    """Check the status of a workflow run. Returns status, stage, progress and completed steps."""
    lifecycle = get_lifecycle()
    try:
        snapshot = await lifecycle.status_service.get_status(
            sanitize_workflow_id(workflow_id)
        )
    except InvalidWorkflowId as e:
        raise ToolError(str(e))
    except StoreUnavailable as e:
        raise ToolError(f"Session store unavailable: {e}")

    if snapshot is None:
        raise ToolError(f"Workflow '{workflow_id}' not found. It may have expired.")
    return snapshot.to_wire()


@mcp.tool()
async def list_user_sessions(session_id: str, limit: int = 10) -> dict:
    """List the most recent workflow runs for a user session id."""
    lifecycle = get_lifecycle()
    try:
        sessions = await lifecycle.repository.list_sessions_by_user(session_id, limit)
    except StoreUnavailable as e:
        raise ToolError(f"Session store unavailable: {e}")
    return {
        "sessions": [to_snapshot(s).to_wire() for s in sessions],
        "total": len(sessions),
    }


@mcp.tool()
async def session_stats() -> dict:
    """Count live workflow sessions per status."""
    try:
        stats = await _session_stats(get_lifecycle().repository)
    except StoreUnavailable as e:
        raise ToolError(f"Session store unavailable: {e}")
    return stats.to_wire()


@mcp.tool()
async def cleanup_sessions() -> dict:
    """Delete expired or unreadable session records. Store TTL remains the primary expiry."""
    try:
        result = await _cleanup_sessions(get_lifecycle().repository)
    except StoreUnavailable as e:
        raise ToolError(f"Session store unavailable: {e}")
    return result.to_wire()


logger.info("MCP server initialized with 4 tools")
