# tests/unit/test_api.py
"""
HTTP surface tests via FastAPI's TestClient.

Sessions are seeded into an in-memory store before the client starts; the
progress stream uses a millisecond poll interval so streams finish quickly.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from itinerary_workflow.api.app import create_app
from itinerary_workflow.background.lifecycle import ServiceLifecycle
from itinerary_workflow.config.schema import StreamConfig, WorkflowConfig
from itinerary_workflow.errors.classifier import classify
from itinerary_workflow.exceptions import StoreUnavailable
from itinerary_workflow.models.memory_store import InMemoryKeyValueStore
from itinerary_workflow.models.session import WorkflowStage

UNKNOWN_ID = "0123456789abcdef"


class BrokenStore(InMemoryKeyValueStore):
    async def get(self, key):
        raise StoreUnavailable("connection refused")


def _lifecycle(store=None) -> ServiceLifecycle:
    config = WorkflowConfig(stream=StreamConfig(poll_interval=0.01, safety_timeout=5))
    return ServiceLifecycle(config, store=store or InMemoryKeyValueStore())


def _parse_sse(body: str) -> list[dict]:
    events = []
    for frame in body.split("\n\n"):
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


@pytest.fixture
def lifecycle() -> ServiceLifecycle:
    return _lifecycle()


@pytest.fixture
def completed_id(lifecycle: ServiceLifecycle) -> str:
    async def seed():
        repo = lifecycle.repository
        session = await repo.create_session("user-1", "req-1")
        await repo.update_progress(session.id, WorkflowStage.GATHER, 25, WorkflowStage.PLAN)
        await repo.update_progress(session.id, WorkflowStage.SPECIALIZE, 50, WorkflowStage.GATHER)
        await repo.update_progress(session.id, WorkflowStage.FORMAT, 75, WorkflowStage.SPECIALIZE)
        await repo.update_progress(session.id, WorkflowStage.COMPLETE, 100, WorkflowStage.FORMAT)
        return session.id

    return asyncio.run(seed())


@pytest.fixture
def client(lifecycle: ServiceLifecycle):
    with TestClient(create_app(lifecycle)) as client:
        yield client


def test_health(client: TestClient):
    """Test /health reports the store as reachable."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestStatus:
    def test_completed_workflow(self, client: TestClient, completed_id: str):
        """Test status of a completed workflow."""
        response = client.get(f"/workflows/{completed_id}/status")

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-cache"
        body = response.json()
        assert body["workflowId"] == completed_id
        assert body["status"] == "completed"
        assert body["currentStage"] == "complete"
        assert body["progress"] == 100
        assert body["completedSteps"] == ["plan", "gather", "specialize", "format"]
        assert "completedAt" in body
        assert body["processingTime"] >= 0

    def test_failed_workflow_includes_error(self, lifecycle: ServiceLifecycle, client: TestClient):
        """Test status of a failed workflow carries the user-facing error."""
        classified = classify("connection reset", "gather")

        async def seed():
            session = await lifecycle.repository.create_session("user-1", "req-1")
            await lifecycle.repository.fail_session(session.id, classified)
            return session.id

        workflow_id = asyncio.run(seed())
        body = client.get(f"/workflows/{workflow_id}/status").json()

        assert body["status"] == "failed"
        assert body["error"] == classified.user_message

    def test_unknown_workflow_404(self, client: TestClient):
        """Test an unknown workflow id returns 404."""
        response = client.get(f"/workflows/{UNKNOWN_ID}/status")

        assert response.status_code == 404
        assert response.json() == {"error": "Workflow not found"}

    @pytest.mark.parametrize("bad_id", ["short", "has!bang!chars", "x" * 65])
    def test_malformed_id_400(self, client: TestClient, bad_id: str):
        """Test a malformed workflow id returns 400."""
        response = client.get(f"/workflows/{bad_id}/status")

        assert response.status_code == 400
        assert "Invalid workflow ID" in response.json()["error"]

    def test_store_failure_500(self):
        """Test a store outage returns 500."""
        with TestClient(create_app(_lifecycle(store=BrokenStore()))) as client:
            response = client.get(f"/workflows/{UNKNOWN_ID}/status")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"


class TestEventStream:
    def test_completed_workflow_stream(self, client: TestClient, completed_id: str):
        """Test the SSE stream of a completed workflow ends with a complete event."""
        response = client.get(f"/workflows/{completed_id}/events")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = _parse_sse(response.text)
        assert [e["type"] for e in events] == ["connected", "progress", "complete"]
        assert events[0]["workflowId"] == completed_id
        assert events[1]["progress"] == 100
        assert events[1]["completedSteps"] == ["plan", "gather", "specialize", "format"]
        assert events[2]["status"] == "completed"
        assert isinstance(events[2]["timestamp"], int)

    def test_unknown_workflow_stream(self, client: TestClient):
        """Test the SSE stream of an unknown workflow ends with a not-found error."""
        response = client.get(f"/workflows/{UNKNOWN_ID}/events")

        events = _parse_sse(response.text)
        assert [e["type"] for e in events] == ["connected", "error"]
        assert events[1]["error"] == "Workflow not found"

    def test_stream_closes_broadcaster(
        self, lifecycle: ServiceLifecycle, client: TestClient, completed_id: str
    ):
        """Test the broadcaster is closed once the stream response finishes."""
        client.get(f"/workflows/{completed_id}/events")

        assert lifecycle.active_broadcasters == 0


class TestProgressNegotiation:
    def test_json_by_default(self, client: TestClient, completed_id: str):
        """Test /progress answers with JSON when SSE is not requested."""
        response = client.get(f"/workflows/{completed_id}/progress")

        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["progress"] == 100

    def test_sse_when_requested(self, client: TestClient, completed_id: str):
        """Test /progress switches to SSE on Accept: text/event-stream."""
        response = client.get(
            f"/workflows/{completed_id}/progress",
            headers={"Accept": "text/event-stream"},
        )

        assert response.headers["content-type"].startswith("text/event-stream")
        assert _parse_sse(response.text)[-1]["type"] == "complete"


def test_stats(lifecycle: ServiceLifecycle, client: TestClient, completed_id: str):
    """Test /stats reports per-status session counts."""
    asyncio.run(lifecycle.repository.create_session("user-2", "req-2"))

    body = client.get("/workflows/stats").json()

    assert body == {"total": 2, "pending": 1, "processing": 0, "completed": 1, "failed": 0}
