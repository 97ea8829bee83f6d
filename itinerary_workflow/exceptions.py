# itinerary_workflow/exceptions.py
"""
Exception types for workflow session state.

Repository callers need to tell "run doesn't exist" apart from "run exists but
rejected this update", so each outcome gets its own type.
"""


class WorkflowStateError(Exception):
    """Base class for all workflow session state errors."""


class StoreUnavailable(WorkflowStateError):
    """The backing key-value store could not be read or written."""


class SessionNotFound(WorkflowStateError):
    """No session exists for the id (unknown or expired)."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow session '{workflow_id}' not found")
        self.workflow_id = workflow_id


class InvalidTransition(WorkflowStateError):
    """The requested update violates the session state machine."""

    def __init__(self, workflow_id: str, reason: str) -> None:
        super().__init__(f"Rejected update for workflow '{workflow_id}': {reason}")
        self.workflow_id = workflow_id
        self.reason = reason


class ConcurrentModification(WorkflowStateError):
    """The session changed between read and write on every attempt."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(
            f"Workflow session '{workflow_id}' was modified concurrently"
        )
        self.workflow_id = workflow_id


class InvalidWorkflowId(ValueError):
    """A client-supplied workflow id is malformed."""
