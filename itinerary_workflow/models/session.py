# itinerary_workflow/models/session.py
"""
Workflow session model and state machine.

One WorkflowSession tracks one run of the plan -> gather -> specialize -> format
pipeline. Sessions are stored as camelCase JSON so external readers see the
same field names as the event stream.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from itinerary_workflow.exceptions import InvalidTransition


class SessionStatus(str, Enum):
    """Run lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class WorkflowStage(str, Enum):
    """Pipeline stages, declared in execution order."""

    PLAN = "plan"
    GATHER = "gather"
    SPECIALIZE = "specialize"
    FORMAT = "format"
    COMPLETE = "complete"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)

    @property
    def is_pipeline_stage(self) -> bool:
        """True for stages that do work (everything except COMPLETE)."""
        return self is not WorkflowStage.COMPLETE

    def can_advance_to(self, target: "WorkflowStage") -> bool:
        """Forward moves and staying put are allowed; backward moves are not."""
        return target.order >= self.order


_STAGE_ORDER = list(WorkflowStage)

PIPELINE_STAGES = tuple(stage for stage in WorkflowStage if stage.is_pipeline_stage)


class WorkflowSession(BaseModel):
    """
    State of one pipeline run.

    Mutated only through SessionRepository; everything else reads.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    session_id: str
    request_id: str
    status: SessionStatus = SessionStatus.PENDING
    current_stage: WorkflowStage = WorkflowStage.PLAN
    progress: int = Field(default=0, ge=0, le=100)
    completed_steps: list[WorkflowStage] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    error_message: str | None = None  # User-facing, set only when FAILED
    error_type: str | None = None  # ErrorType value of the recorded failure
    error_stage: str | None = None
    error_detail: str | None = None  # Raw failure message
    retry_count: int = 0
    form_data: dict[str, Any] = Field(default_factory=dict)
    stage_timings: dict[str, int] = Field(default_factory=dict)
    agent_outputs: dict[str, Any] = Field(default_factory=dict)
    total_processing_time: int | None = None  # ms from started_at to completed_at
    version: int = 0

    def to_json(self) -> str:
        """Serialize for storage (camelCase keys)."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "WorkflowSession":
        """Deserialize a stored session."""
        return cls.model_validate_json(raw)

    def elapsed_ms(self, until: datetime) -> int:
        """Milliseconds between started_at and until."""
        return int((until - self.started_at).total_seconds() * 1000)


def generate_workflow_id() -> str:
    """
    Generate a unique workflow ID.

    Returns:
        32-character hex string (UUID4)
    """
    return uuid4().hex


def validate_progress_update(
    session: WorkflowSession, stage: WorkflowStage, progress: int
) -> None:
    """
    Check a stage/progress update against the session state machine.

    Raises:
        InvalidTransition: If the session is terminal, progress is out of range
            or would decrease, the stage would move backward, or progress 100
            and stage COMPLETE do not coincide.
    """
    if session.status.is_terminal:
        raise InvalidTransition(
            session.id, f"session is already {session.status.value}"
        )
    if not 0 <= progress <= 100:
        raise InvalidTransition(session.id, f"progress {progress} outside 0-100")
    if progress < session.progress:
        raise InvalidTransition(
            session.id,
            f"progress cannot decrease ({session.progress} -> {progress})",
        )
    if not session.current_stage.can_advance_to(stage):
        raise InvalidTransition(
            session.id,
            f"stage cannot move backward "
            f"({session.current_stage.value} -> {stage.value})",
        )
    if (progress == 100) != (stage is WorkflowStage.COMPLETE):
        raise InvalidTransition(
            session.id,
            f"progress 100 and stage 'complete' must coincide "
            f"(got stage={stage.value}, progress={progress})",
        )
