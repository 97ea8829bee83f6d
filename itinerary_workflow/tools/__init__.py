"""Service layer shared by the HTTP API, MCP server and CLI."""

from .check_status import StatusQueryService, check_status, to_snapshot
from .maintenance import cleanup_sessions, session_stats

__all__ = [
    "StatusQueryService",
    "check_status",
    "to_snapshot",
    "session_stats",
    "cleanup_sessions",
]
