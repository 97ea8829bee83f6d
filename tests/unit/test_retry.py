# tests/unit/test_retry.py
"""
Tests for the classification-driven stage retry policy.
"""

import pytest

from itinerary_workflow.errors.retry import is_retryable_for, stage_retry


def test_predicate_follows_classification():
    """Test the retry predicate follows should_retry for the stage."""
    predicate = is_retryable_for("gather")

    assert predicate(ConnectionError("connection refused")) is True
    assert predicate(ValueError("invalid destination")) is False


@pytest.mark.asyncio
async def test_transient_failure_retried_until_success():
    """Test a transient failure is retried until the call succeeds."""
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ConnectionError("network unreachable")
        return "ok"

    async for attempt in stage_retry("gather", max_attempts=3, min_wait=0, max_wait=0):
        with attempt:
            result = await flaky()

    assert result == "ok"
    assert calls == 3


@pytest.mark.asyncio
async def test_non_retryable_failure_raised_immediately():
    """Test a non-retryable failure is raised on the first attempt."""
    calls = 0

    async def bad_input():
        nonlocal calls
        calls += 1
        raise ValueError("Validation failed: no travellers")

    with pytest.raises(ValueError, match="no travellers"):
        async for attempt in stage_retry("plan", max_attempts=5, min_wait=0, max_wait=0):
            with attempt:
                await bad_input()

    assert calls == 1


@pytest.mark.asyncio
async def test_last_error_reraised_when_attempts_run_out():
    """Test the last error is re-raised once attempts run out."""
    calls = 0

    async def always_times_out():
        nonlocal calls
        calls += 1
        raise TimeoutError("timed out")

    with pytest.raises(TimeoutError):
        async for attempt in stage_retry("format", max_attempts=2, min_wait=0, max_wait=0):
            with attempt:
                await always_times_out()

    assert calls == 2
