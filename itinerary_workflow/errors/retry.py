# itinerary_workflow/errors/retry.py
"""Retry policy for pipeline stage calls, driven by error classification."""

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .classifier import classify, should_retry

logger = logging.getLogger(__name__)


def is_retryable_for(stage: str):
    """
    Build a tenacity predicate for one stage.

    Returns a callable that is True when the exception classifies as an
    automatically retryable failure for that stage.
    """

    def _predicate(exception: BaseException) -> bool:
        return should_retry(classify(exception, stage))

    return _predicate


def stage_retry(
    stage: str,
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
) -> AsyncRetrying:
    """
    Tenacity retry controller for a stage call made by the dispatch engine.

    Usage:
        async for attempt in stage_retry("gather"):
            with attempt:
                output = await run_gather(...)

    Non-retryable failures are re-raised immediately; the last failure is
    re-raised once attempts run out.

    Args:
        stage: Pipeline stage name used for classification
        max_attempts: Total attempts including the first call
        min_wait: Minimum backoff in seconds
        max_wait: Maximum backoff in seconds
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception(is_retryable_for(stage)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
