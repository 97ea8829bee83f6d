# itinerary_workflow/sessions/repository.py
"""
Workflow session repository.

The only component allowed to write session state. Every mutation reads the
full stored session, applies the change to a copy, and writes the whole value
back with compare-and-set so a concurrent writer's update is never silently
discarded. A lost race re-runs the read-modify-write against the fresh value,
re-checking the state machine each time.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from itinerary_workflow.errors.classifier import ClassifiedError
from itinerary_workflow.exceptions import (
    ConcurrentModification,
    InvalidTransition,
    SessionNotFound,
)
from itinerary_workflow.models.responses import SessionStats
from itinerary_workflow.models.session import (
    SessionStatus,
    WorkflowSession,
    WorkflowStage,
    generate_workflow_id,
    validate_progress_update,
)
from itinerary_workflow.models.store import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "workflow:session:"
DEFAULT_TTL_SECONDS = 3600


def _coerce_stage(workflow_id: str, value: WorkflowStage | str) -> WorkflowStage:
    try:
        return WorkflowStage(value)
    except ValueError:
        raise InvalidTransition(workflow_id, f"unknown stage '{value}'") from None


class SessionRepository:
    """
    Create/read/update/fail operations over a KeyValueStore.

    Stateless per call: all state lives in the store, so one instance can be
    shared by any number of tasks.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_write_attempts: int = 3,
    ) -> None:
        """
        Initialize repository.

        Args:
            store: Key-value store (Redis or in-memory)
            key_prefix: Prefix for session keys
            ttl_seconds: Session lifetime, re-applied on every write
            max_write_attempts: Read-modify-write attempts on contention
        """
        self._store = store
        self._key_prefix = key_prefix
        self._ttl_seconds = ttl_seconds
        self._max_write_attempts = max_write_attempts

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def key_for(self, workflow_id: str) -> str:
        """Store key for a workflow id."""
        return f"{self._key_prefix}{workflow_id}"

    # ------------------------------------------------------------------
    # Reads

    def _decode(self, workflow_id: str, raw: str) -> WorkflowSession | None:
        try:
            return WorkflowSession.from_json(raw)
        except ValidationError as e:
            logger.error(f"Stored session {workflow_id} is unreadable: {e}")
            return None

    async def get_session(self, workflow_id: str) -> WorkflowSession | None:
        """
        Get a session by workflow id.

        Returns:
            WorkflowSession, or None if unknown, expired or unreadable

        Raises:
            StoreUnavailable: If the store cannot be read
        """
        raw = await self._store.get(self.key_for(workflow_id))
        if raw is None:
            logger.debug(f"Session {workflow_id} not found")
            return None
        return self._decode(workflow_id, raw)

    async def _all_sessions(self) -> list[WorkflowSession]:
        sessions = []
        for key in await self._store.scan_keys(f"{self._key_prefix}*"):
            raw = await self._store.get(key)
            if raw is None:
                continue
            session = self._decode(key[len(self._key_prefix):], raw)
            if session is not None:
                sessions.append(session)
        return sessions

    async def list_sessions_by_user(
        self, session_id: str, limit: int = 10
    ) -> list[WorkflowSession]:
        """
        List sessions started under one user session id.

        Returns:
            Up to limit sessions, newest first
        """
        matching = [s for s in await self._all_sessions() if s.session_id == session_id]
        matching.sort(key=lambda s: s.started_at, reverse=True)
        return matching[:limit]

    async def get_session_stats(self) -> SessionStats:
        """Count live sessions per status."""
        stats = SessionStats()
        for session in await self._all_sessions():
            stats.total += 1
            field = session.status.value
            setattr(stats, field, getattr(stats, field) + 1)
        return stats

    # ------------------------------------------------------------------
    # Writes

    async def create_session(
        self,
        session_id: str,
        request_id: str,
        form_payload: dict[str, Any] | None = None,
    ) -> WorkflowSession:
        """
        Create and persist a new pending session.

        Args:
            session_id: Caller's user session id
            request_id: Caller's request id
            form_payload: Opaque form data for the run

        Returns:
            The stored WorkflowSession

        Raises:
            StoreUnavailable: If the store cannot be written
        """
        session = WorkflowSession(
            id=generate_workflow_id(),
            session_id=session_id,
            request_id=request_id,
            form_data=form_payload or {},
        )
        await self._store.set(
            self.key_for(session.id), session.to_json(), self._ttl_seconds
        )
        logger.info(
            f"Created session {session.id} (session_id={session_id}, "
            f"request_id={request_id}, ttl={self._ttl_seconds}s)"
        )
        return session

    async def _mutate(
        self,
        workflow_id: str,
        mutator: Callable[[WorkflowSession], bool],
    ) -> WorkflowSession:
        """
        Read-modify-write one session.

        The mutator edits a copy in place and returns False for a no-op (nothing
        is written). Lost compare-and-set races are retried.

        Raises:
            SessionNotFound: If the id does not resolve
            InvalidTransition: If the mutator rejects the update
            ConcurrentModification: If every attempt lost a race
        """
        key = self.key_for(workflow_id)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_write_attempts),
            wait=wait_random(min=0, max=0.05),
            retry=retry_if_exception_type(ConcurrentModification),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                raw = await self._store.get(key)
                if raw is None:
                    raise SessionNotFound(workflow_id)
                current = self._decode(workflow_id, raw)
                if current is None:
                    raise SessionNotFound(workflow_id)

                updated = current.model_copy(deep=True)
                if not mutator(updated):
                    return current

                updated.version = current.version + 1
                written = await self._store.compare_and_set(
                    key, raw, updated.to_json(), self._ttl_seconds
                )
                if not written:
                    raise ConcurrentModification(workflow_id)
                return updated

    async def update_progress(
        self,
        workflow_id: str,
        stage: WorkflowStage | str,
        progress: int,
        completed_step: WorkflowStage | str | None = None,
    ) -> WorkflowSession:
        """
        Record a stage/progress update reported by the dispatch engine.

        Progress 100 (with stage "complete") completes the run and sets
        completed_at and total_processing_time.

        Args:
            workflow_id: Workflow run id
            stage: Stage the run is now in
            progress: New completion percentage (0-100, non-decreasing)
            completed_step: Stage that just finished, appended once

        Returns:
            The stored session after the update

        Raises:
            SessionNotFound: If the id does not resolve
            InvalidTransition: If the update violates the state machine
        """
        target_stage = _coerce_stage(workflow_id, stage)
        step = (
            _coerce_stage(workflow_id, completed_step)
            if completed_step is not None
            else None
        )
        if step is not None and not step.is_pipeline_stage:
            raise InvalidTransition(
                workflow_id, f"'{step.value}' is not a pipeline stage"
            )

        def apply(session: WorkflowSession) -> bool:
            validate_progress_update(session, target_stage, progress)

            session.current_stage = target_stage
            session.progress = progress
            session.status = (
                SessionStatus.COMPLETED if progress == 100 else SessionStatus.PROCESSING
            )

            if step is not None:
                if step in session.completed_steps:
                    logger.warning(
                        f"Session {workflow_id}: step '{step.value}' already recorded"
                    )
                else:
                    session.completed_steps.append(step)

            if progress == 100:
                session.completed_at = datetime.now(timezone.utc)
                session.total_processing_time = session.elapsed_ms(session.completed_at)
            return True

        session = await self._mutate(workflow_id, apply)
        logger.info(
            f"Updated session {workflow_id} - Stage: {session.current_stage.value}, "
            f"Progress: {session.progress}%"
        )
        return session

    async def complete_session(self, workflow_id: str) -> WorkflowSession:
        """Mark a run completed (stage "complete", progress 100)."""
        return await self.update_progress(workflow_id, WorkflowStage.COMPLETE, 100)

    async def store_stage_output(
        self,
        workflow_id: str,
        stage: WorkflowStage | str,
        output: Any,
        duration_ms: int,
    ) -> WorkflowSession:
        """
        Merge one stage's output and duration into the session.

        Other fields are left untouched. A repeated stage overwrites its entry.

        Raises:
            SessionNotFound: If the id does not resolve
            InvalidTransition: If the session is terminal, the stage is not a
                pipeline stage, or the duration is negative
        """
        target_stage = _coerce_stage(workflow_id, stage)
        if not target_stage.is_pipeline_stage:
            raise InvalidTransition(
                workflow_id, f"'{target_stage.value}' is not a pipeline stage"
            )
        if duration_ms < 0:
            raise InvalidTransition(workflow_id, f"negative duration {duration_ms}ms")

        def apply(session: WorkflowSession) -> bool:
            if session.status.is_terminal:
                raise InvalidTransition(
                    workflow_id, f"session is already {session.status.value}"
                )
            if target_stage.value in session.agent_outputs:
                logger.warning(
                    f"Session {workflow_id}: overwriting output for '{target_stage.value}'"
                )
            session.agent_outputs[target_stage.value] = output
            session.stage_timings[target_stage.value] = duration_ms
            return True

        session = await self._mutate(workflow_id, apply)
        logger.info(
            f"Stored {target_stage.value} output for session {workflow_id} "
            f"({duration_ms}ms)"
        )
        return session

    async def fail_session(
        self, workflow_id: str, classified: ClassifiedError
    ) -> WorkflowSession:
        """
        Record a terminal failure.

        Calling again with the same classification is a no-op (logged as a
        warning).

        Raises:
            SessionNotFound: If the id does not resolve
            InvalidTransition: If the run already completed, or already failed
                with a different classification
        """

        def apply(session: WorkflowSession) -> bool:
            if session.status is SessionStatus.FAILED:
                if (
                    session.error_type == classified.type.value
                    and session.error_stage == classified.stage
                    and session.error_detail == classified.message
                ):
                    logger.warning(
                        f"Session {workflow_id} already failed with this error; ignoring"
                    )
                    return False
                raise InvalidTransition(
                    workflow_id, "session already failed with a different error"
                )
            if session.status.is_terminal:
                raise InvalidTransition(
                    workflow_id, f"session is already {session.status.value}"
                )

            now = datetime.now(timezone.utc)
            session.status = SessionStatus.FAILED
            session.error_message = classified.user_message
            session.error_type = classified.type.value
            session.error_stage = classified.stage
            session.error_detail = classified.message
            session.completed_at = now
            session.total_processing_time = session.elapsed_ms(now)
            session.retry_count += 1
            return True

        session = await self._mutate(workflow_id, apply)
        logger.info(
            f"Session {workflow_id} failed at {classified.stage} "
            f"({classified.type.value}, retryable={classified.retryable})"
        )
        return session

    # ------------------------------------------------------------------
    # Maintenance

    async def delete_session(self, workflow_id: str) -> bool:
        """
        Delete a session outright (cancellation or manual cleanup).

        Returns:
            True if a session was removed
        """
        deleted = await self._store.delete(self.key_for(workflow_id))
        logger.info(f"Deleted session {workflow_id}: {deleted}")
        return deleted

    async def cleanup_expired(self) -> int:
        """
        Best-effort sweep of dead session keys.

        The store's own TTL is the primary expiry mechanism. This removes keys
        that have lost their TTL or already lapsed, plus records that can no
        longer be decoded. Takes no locks, so it never blocks writers.

        Returns:
            Number of keys deleted
        """
        removed = 0
        for key in await self._store.scan_keys(f"{self._key_prefix}*"):
            ttl = await self._store.ttl(key)
            if ttl <= 0:
                if await self._store.delete(key):
                    removed += 1
                continue

            raw = await self._store.get(key)
            if raw is not None and self._decode(key[len(self._key_prefix):], raw) is None:
                if await self._store.delete(key):
                    removed += 1

        logger.info(f"Session cleanup removed {removed} key(s)")
        return removed
