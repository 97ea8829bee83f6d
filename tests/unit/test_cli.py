# tests/unit/test_cli.py
"""
CLI unit tests.

Tests each command via typer's CliRunner. _get_lifecycle is patched to hand
out a lifecycle backed by a seeded in-memory store.
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from itinerary_workflow.background.lifecycle import ServiceLifecycle
from itinerary_workflow.cli import _fmt_duration, app
from itinerary_workflow.config.schema import StreamConfig, WorkflowConfig
from itinerary_workflow.errors.classifier import classify
from itinerary_workflow.exceptions import StoreUnavailable
from itinerary_workflow.models.memory_store import InMemoryKeyValueStore
from itinerary_workflow.models.session import WorkflowStage

runner = CliRunner()

UNKNOWN_ID = "0123456789abcdef"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def lifecycle() -> ServiceLifecycle:
    config = WorkflowConfig(stream=StreamConfig(poll_interval=0.01, safety_timeout=5))
    return ServiceLifecycle(config, store=InMemoryKeyValueStore())


@pytest.fixture
def patched(lifecycle: ServiceLifecycle):
    with patch("itinerary_workflow.cli._get_lifecycle", AsyncMock(return_value=lifecycle)):
        yield lifecycle


def _seed(lifecycle: ServiceLifecycle, complete: bool = False, fail: bool = False) -> str:
    async def seed():
        repo = lifecycle.repository
        session = await repo.create_session("user-1", "req-1")
        await repo.update_progress(session.id, WorkflowStage.GATHER, 25, WorkflowStage.PLAN)
        if complete:
            await repo.update_progress(session.id, WorkflowStage.COMPLETE, 100, WorkflowStage.GATHER)
        if fail:
            await repo.fail_session(session.id, classify("Invalid API key", "gather"))
        return session.id

    return asyncio.run(seed())


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestHelp:
    def test_no_args_shows_help(self):
        """Test running with no arguments prints help."""
        result = runner.invoke(app, [])
        assert "Workflow session state" in result.output

    def test_help_lists_commands(self):
        """Test --help lists every command."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("status", "watch", "stats", "cleanup", "serve", "mcp"):
            assert command in result.output


class TestStatus:
    def test_running_workflow(self, patched: ServiceLifecycle):
        """Test status shows stage and progress of a running workflow."""
        workflow_id = _seed(patched)

        result = runner.invoke(app, ["status", workflow_id])

        assert result.exit_code == 0
        assert workflow_id in result.output
        assert "processing" in result.output
        assert "25%" in result.output
        assert "plan" in result.output

    def test_failed_workflow_shows_error(self, patched: ServiceLifecycle):
        """Test status shows the error of a failed workflow."""
        workflow_id = _seed(patched, fail=True)

        result = runner.invoke(app, ["status", workflow_id])

        assert result.exit_code == 0
        assert "failed" in result.output
        assert "AI services" in result.output

    def test_unknown_workflow(self, patched: ServiceLifecycle):
        """Test status of an unknown workflow exits non-zero."""
        result = runner.invoke(app, ["status", UNKNOWN_ID])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_id(self, patched: ServiceLifecycle):
        """Test status rejects a malformed workflow id."""
        result = runner.invoke(app, ["status", "bad!"])

        assert result.exit_code == 2
        assert "Invalid workflow ID" in result.output

    def test_store_unavailable(self):
        """Test a store outage is reported without a traceback."""
        failing = AsyncMock(side_effect=StoreUnavailable("Redis not reachable"))
        with patch("itinerary_workflow.cli._get_lifecycle", failing):
            result = runner.invoke(app, ["status", UNKNOWN_ID])

        assert result.exit_code == 1
        assert "Redis not reachable" in result.output


class TestWatch:
    def test_watch_until_complete(self, patched: ServiceLifecycle):
        """Test watch follows a workflow until its complete event."""
        workflow_id = _seed(patched, complete=True)

        result = runner.invoke(app, ["watch", workflow_id])

        assert result.exit_code == 0
        assert f"Connected to {workflow_id}" in result.output
        assert "100%" in result.output
        assert "completed" in result.output

    def test_watch_unknown_workflow(self, patched: ServiceLifecycle):
        """Test watch of an unknown workflow reports the error and exits non-zero."""
        result = runner.invoke(app, ["watch", UNKNOWN_ID])

        assert result.exit_code == 1
        assert "Workflow not found" in result.output


class TestMaintenance:
    def test_stats(self, patched: ServiceLifecycle):
        """Test stats prints per-status counts."""
        _seed(patched)
        _seed(patched, complete=True)

        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "processing" in result.output
        assert "completed" in result.output
        assert "total" in result.output

    def test_cleanup(self, patched: ServiceLifecycle):
        """Test cleanup reports how many records were removed."""
        asyncio.run(patched.store.set(patched.repository.key_for("corrupt-1"), "junk", 60))

        result = runner.invoke(app, ["cleanup"])

        assert result.exit_code == 0
        assert "Removed 1 session(s)." in result.output


class TestServe:
    def test_serve_uses_config_and_overrides(self, tmp_path: Path):
        """Test serve reads the config file and applies host/port overrides."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({"server": {"host": "0.0.0.0", "port": 9000}}))

        with patch("uvicorn.run") as mock_run, patch(
            "itinerary_workflow.logging_config.configure_logging"
        ):
            result = runner.invoke(app, ["serve", "--config", str(config_path), "--port", "9100"])

        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 9100


def test_fmt_duration():
    """Test duration formatting for the status table."""
    assert _fmt_duration(None) == "-"
    assert _fmt_duration(42_000) == "42s"
    assert _fmt_duration(317_000) == "5m17s"
