# itinerary_workflow/background/lifecycle.py
"""
Service lifecycle management.

Owns the one store client handle and every open broadcaster, so shutdown can
stop all polling tasks before the store connection is closed.
"""

import logging
import time

from itinerary_workflow.background.broadcaster import BroadcasterState, ProgressBroadcaster
from itinerary_workflow.config.schema import WorkflowConfig
from itinerary_workflow.models.factory import create_store
from itinerary_workflow.models.store import KeyValueStore
from itinerary_workflow.sessions.repository import SessionRepository
from itinerary_workflow.tools.check_status import StatusQueryService

logger = logging.getLogger(__name__)


class ServiceLifecycle:
    """
    Service lifecycle coordinator.

    Manages:
        - Store client creation and connectivity check
        - Repository and status service wiring
        - Broadcaster registration and teardown
    """

    def __init__(
        self,
        config: WorkflowConfig | None = None,
        store: KeyValueStore | None = None,
    ) -> None:
        """
        Initialize lifecycle manager.

        Args:
            config: WorkflowConfig (defaults used if None)
            store: Pre-built store (overrides config.store.backend)
        """
        self._config = config or WorkflowConfig()
        self._store = store or create_store(self._config)
        self._repository = SessionRepository(
            self._store,
            key_prefix=self._config.store.key_prefix,
            ttl_seconds=self._config.store.session_ttl_seconds,
            max_write_attempts=self._config.store.max_write_attempts,
        )
        self._status_service = StatusQueryService(self._repository)
        self._broadcasters: set[ProgressBroadcaster] = set()
        logger.info(
            f"Created ServiceLifecycle (backend={self._config.store.backend}, "
            f"ttl={self._config.store.session_ttl_seconds}s)"
        )

    @property
    def config(self) -> WorkflowConfig:
        return self._config

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def repository(self) -> SessionRepository:
        return self._repository

    @property
    def status_service(self) -> StatusQueryService:
        return self._status_service

    @property
    def active_broadcasters(self) -> int:
        """Number of broadcasters still streaming."""
        self._prune()
        return len(self._broadcasters)

    def _prune(self) -> None:
        """
        Drop finished broadcasters.

        A broadcaster that was opened but never started (the response was
        cancelled before its body ran) is closed and dropped once it is older
        than its safety timeout.
        """
        now = time.monotonic()
        live: set[ProgressBroadcaster] = set()
        for b in self._broadcasters:
            if b.task is not None:
                if not b.task.done():
                    live.add(b)
            elif b.state is not BroadcasterState.CLOSED:
                if now - b.created_at > b.safety_timeout:
                    logger.warning(
                        f"Dropping broadcaster for {b.workflow_id}: never started"
                    )
                    b.close()
                else:
                    live.add(b)
        self._broadcasters = live

    def open_broadcaster(self, workflow_id: str) -> ProgressBroadcaster:
        """
        Create a broadcaster for one subscriber, using the stream config.

        The caller starts it by iterating broadcaster.stream().
        """
        self._prune()
        broadcaster = ProgressBroadcaster(
            self._repository,
            workflow_id,
            poll_interval=self._config.stream.poll_interval,
            safety_timeout=self._config.stream.safety_timeout,
        )
        self._broadcasters.add(broadcaster)
        return broadcaster

    async def startup(self) -> None:
        """
        Start the service.

        Checks store connectivity; raises StoreUnavailable if unreachable.
        """
        logger.info("Starting service lifecycle...")
        await self._store.ping()
        logger.info("Service lifecycle started: store reachable")

    async def shutdown(self) -> None:
        """
        Shut down gracefully.

        Steps:
            1. Close every open broadcaster and wait for its task to exit
            2. Close the store connection
        """
        logger.info("Shutting down service lifecycle...")

        broadcasters = list(self._broadcasters)
        for broadcaster in broadcasters:
            broadcaster.close()
        for broadcaster in broadcasters:
            await broadcaster.wait_closed()
        self._broadcasters.clear()
        if broadcasters:
            logger.info(f"Closed {len(broadcasters)} broadcaster(s)")

        await self._store.close()
        logger.info("Service lifecycle shutdown complete")
