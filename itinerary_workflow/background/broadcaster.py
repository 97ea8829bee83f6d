# itinerary_workflow/background/broadcaster.py
"""
Progress broadcaster for one subscriber connection.

Polls the session repository on a fixed interval and turns each read into a
stream event. The repository has no change notification, so polling is the
only option; read staleness is bounded by the poll interval.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from enum import Enum

from itinerary_workflow.models.events import (
    CompleteEvent,
    ConnectedEvent,
    ErrorEvent,
    ProgressEvent,
    StreamEvent,
)
from itinerary_workflow.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_SAFETY_TIMEOUT = 300.0


class BroadcasterState(Enum):
    """Subscriber connection states."""

    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


class ProgressBroadcaster:
    """
    Cancellable polling task feeding an event queue.

    Event sequence:
        - connected, once, on open
        - progress, once per poll
        - complete, once, after the progress event that shows a terminal status
        - error, once, if the run is not found or cannot be read

    The stream ends after complete/error, on close(), or when the safety
    timeout elapses (no event is emitted for the timeout).
    """

    def __init__(
        self,
        repository: SessionRepository,
        workflow_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        safety_timeout: float = DEFAULT_SAFETY_TIMEOUT,
    ) -> None:
        """
        Initialize broadcaster.

        Args:
            repository: Session repository (read-only use)
            workflow_id: Run to follow
            poll_interval: Seconds between session reads
            safety_timeout: Seconds after open before the stream is force-closed
        """
        self._repository = repository
        self._workflow_id = workflow_id
        self._poll_interval = poll_interval
        self._safety_timeout = safety_timeout
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._state = BroadcasterState.CONNECTING
        self._task: asyncio.Task | None = None
        self._timed_out = False
        self._created_at = time.monotonic()

    @property
    def workflow_id(self) -> str:
        return self._workflow_id

    @property
    def state(self) -> BroadcasterState:
        return self._state

    @property
    def safety_timeout(self) -> float:
        return self._safety_timeout

    @property
    def created_at(self) -> float:
        """Monotonic time the broadcaster was created."""
        return self._created_at

    @property
    def timed_out(self) -> bool:
        """True if the stream was closed by the safety timeout."""
        return self._timed_out

    @property
    def task(self) -> asyncio.Task | None:
        """The polling task (for inspection/testing)."""
        return self._task

    async def start(self) -> None:
        """
        Start the polling task.

        Emits the connected event immediately.
        """
        if self._task is not None or self._state is BroadcasterState.CLOSED:
            logger.warning(f"Broadcaster for {self._workflow_id} already started")
            return

        self._emit(ConnectedEvent(workflow_id=self._workflow_id))
        self._state = BroadcasterState.STREAMING
        self._task = asyncio.create_task(
            self._run_loop(), name=f"broadcaster:{self._workflow_id}"
        )
        logger.info(f"Broadcaster opened for workflow {self._workflow_id}")

    def close(self) -> None:
        """
        Stop polling and end the stream.

        Synchronous and idempotent: safe to call repeatedly, and after the
        stream has ended on its own.
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._finish()

    async def wait_closed(self) -> None:
        """Wait until the polling task has fully exited."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def stream(self) -> AsyncIterator[StreamEvent]:
        """
        Iterate over events until the stream ends.

        Leaving the iteration early (client disconnect) closes the broadcaster.
        """
        if self._task is None:
            await self.start()
        try:
            while True:
                event = await self._queue.get()
                if event is None:
                    break
                yield event
        finally:
            self.close()

    def _emit(self, event: StreamEvent) -> None:
        if self._state is BroadcasterState.CLOSED:
            return
        self._queue.put_nowait(event)

    def _finish(self) -> None:
        if self._state is BroadcasterState.CLOSED:
            return
        self._state = BroadcasterState.CLOSED
        self._queue.put_nowait(None)
        logger.info(f"Broadcaster closed for workflow {self._workflow_id}")

    async def _run_loop(self) -> None:
        """
        Main loop: sleep, read, emit until a terminal event or the timeout.

        Handles CancelledError for close().
        """
        try:
            async with asyncio.timeout(self._safety_timeout):
                while True:
                    await asyncio.sleep(self._poll_interval)
                    if await self._poll_once():
                        break
        except TimeoutError:
            self._timed_out = True
            logger.warning(
                f"Broadcaster for {self._workflow_id} hit safety timeout "
                f"({self._safety_timeout}s)"
            )
        except asyncio.CancelledError:
            logger.info(f"Broadcaster for {self._workflow_id} cancelled")
            raise
        finally:
            self._finish()

    async def _poll_once(self) -> bool:
        """
        Read the session once and emit the matching events.

        Returns:
            True if the stream should end
        """
        try:
            session = await self._repository.get_session(self._workflow_id)
        except Exception as e:
            logger.error(f"Broadcaster read failed for {self._workflow_id}: {e}")
            self._emit(ErrorEvent(error=str(e) or type(e).__name__))
            return True

        if session is None:
            self._emit(ErrorEvent(error="Workflow not found"))
            return True

        self._emit(
            ProgressEvent(
                workflow_id=session.id,
                status=session.status.value,
                current_stage=session.current_stage.value,
                progress=session.progress,
                completed_steps=[step.value for step in session.completed_steps],
            )
        )

        if session.status.is_terminal:
            self._emit(
                CompleteEvent(
                    status=session.status.value,
                    processing_time=session.total_processing_time,
                    error=session.error_message,
                )
            )
            return True
        return False
