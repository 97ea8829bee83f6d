# itinerary_workflow/models/events.py
"""
Progress stream event payloads.

Each event is framed for Server-Sent Events as a single "data: <json>" line
followed by a blank line.
"""

import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class StreamEvent(BaseModel):
    """Base class for all stream events."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    timestamp: int = Field(default_factory=now_ms)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


class ConnectedEvent(StreamEvent):
    type: Literal["connected"] = "connected"
    workflow_id: str


class ProgressEvent(StreamEvent):
    type: Literal["progress"] = "progress"
    workflow_id: str
    status: str
    current_stage: str
    progress: int
    completed_steps: list[str] = Field(default_factory=list)


class CompleteEvent(StreamEvent):
    """Final event for a run that completed or failed."""

    type: Literal["complete"] = "complete"
    status: str
    processing_time: int | None = None
    error: str | None = None


class ErrorEvent(StreamEvent):
    """Final event when the run cannot be read (unknown id or store failure)."""

    type: Literal["error"] = "error"
    error: str
