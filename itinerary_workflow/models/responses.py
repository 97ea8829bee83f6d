# itinerary_workflow/models/responses.py
"""
Pydantic response models for status queries and maintenance tools.

Serialized with camelCase aliases to match the HTTP wire format.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump as JSON-ready dict with camelCase keys, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StatusSnapshot(_CamelModel):
    """Point-in-time projection of a workflow session."""

    workflow_id: str = Field(description="Workflow run identifier")
    status: str = Field(description="pending/processing/completed/failed")
    current_stage: str = Field(description="plan/gather/specialize/format/complete")
    progress: int = Field(ge=0, le=100, description="Completion percentage")
    completed_steps: list[str] = Field(
        default_factory=list, description="Stages finished so far, in order"
    )
    started_at: datetime = Field(description="Run start time (UTC)")
    completed_at: datetime | None = Field(
        default=None, description="Set once the run completes or fails"
    )
    processing_time: int | None = Field(
        default=None, description="Total processing time in milliseconds"
    )
    error: str | None = Field(default=None, description="Failure message if failed")


class SessionStats(_CamelModel):
    """Session counts per status across the store."""

    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class CleanupResponse(_CamelModel):
    """Result of an explicit expired-session sweep."""

    removed: int = Field(description="Number of session keys deleted")
    message: str = Field(
        default="Expired sessions removed. Store TTL remains the primary expiry.",
        description="Human-readable summary",
    )
