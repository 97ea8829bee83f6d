# itinerary_workflow/models/__init__.py
"""
Data models for itinerary-workflow.

Provides the workflow session model, stream events, Pydantic response models
and the key-value store adapters.
"""

from itinerary_workflow.models.events import (
    CompleteEvent,
    ConnectedEvent,
    ErrorEvent,
    ProgressEvent,
    StreamEvent,
)
from itinerary_workflow.models.memory_store import InMemoryKeyValueStore
from itinerary_workflow.models.responses import (
    CleanupResponse,
    SessionStats,
    StatusSnapshot,
)
from itinerary_workflow.models.session import (
    PIPELINE_STAGES,
    SessionStatus,
    WorkflowSession,
    WorkflowStage,
    generate_workflow_id,
    validate_progress_update,
)
from itinerary_workflow.models.store import KeyValueStore

__all__ = [
    # Session
    "SessionStatus",
    "WorkflowStage",
    "WorkflowSession",
    "PIPELINE_STAGES",
    "generate_workflow_id",
    "validate_progress_update",
    # Events
    "StreamEvent",
    "ConnectedEvent",
    "ProgressEvent",
    "CompleteEvent",
    "ErrorEvent",
    # Responses
    "StatusSnapshot",
    "SessionStats",
    "CleanupResponse",
    # Stores
    "KeyValueStore",
    "InMemoryKeyValueStore",
]
