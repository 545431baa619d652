"""Tests for the HTTP API."""

import time

import pytest
from fastapi.testclient import TestClient

from outbox.api.app import create_fastapi_app
from outbox.app import Application
from outbox.config import QueueSettings


def poll(predicate, timeout: float = 2.0) -> None:
    """Wait for background work on the server loop."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        time.sleep(0.01)


@pytest.fixture
def client(writer):
    """Client against an app with a fake remote store and no retries."""
    application = Application(
        db_path=":memory:",
        writer=writer,
        settings=QueueSettings(flush_interval=60, max_attempts=0),
    )
    with TestClient(create_fastapi_app(application)) as test_client:
        yield test_client


def queue_status(client: TestClient) -> dict:
    response = client.get("/api/queue")
    assert response.status_code == 200
    return response.json()


class TestMessagingRoutes:
    """Tests for POST /api/messages."""

    def test_enqueue_message(self, client, writer):
        """Test a message is accepted and delivered in the background."""
        response = client.post("/api/messages", json={"content": "hello"})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "queued"
        assert body["id"]

        poll(lambda: writer.written_contents == ["hello"])
        assert queue_status(client)["session_id"] == "S1"

    def test_enqueue_assistant_message(self, client, writer):
        """Test assistant replies go through the same queue."""
        response = client.post(
            "/api/messages", json={"role": "assistant", "content": "Hi there!"}
        )
        assert response.status_code == 202
        poll(lambda: writer.written)
        assert writer.written[0]["role"] == "assistant"

    def test_enqueue_empty_content(self, client):
        """Test empty messages are rejected."""
        response = client.post("/api/messages", json={"content": ""})
        assert response.status_code == 422

    def test_enqueue_blank_content(self, client):
        """Test whitespace-only messages are rejected."""
        response = client.post("/api/messages", json={"content": "   "})
        assert response.status_code == 422

    def test_enqueue_too_long(self, client):
        """Test user messages over the length limit are rejected."""
        response = client.post("/api/messages", json={"content": "x" * 501})
        assert response.status_code == 422

    def test_enqueue_invalid_role(self, client):
        """Test unknown roles are rejected."""
        response = client.post(
            "/api/messages", json={"role": "system", "content": "hello"}
        )
        assert response.status_code == 422


class TestDeadLetterRoutes:
    """Tests for /api/dead-letters."""

    def test_dead_letter_lifecycle(self, client, writer):
        """Test a failed message can be listed, retried and delivered."""
        writer.fail_insert_one = 1
        client.post("/api/messages", json={"content": "hello"})
        poll(lambda: queue_status(client)["dead_letters"] == 1)

        listing = client.get("/api/dead-letters").json()
        assert len(listing) == 1
        assert listing[0]["content"] == "hello"
        assert listing[0]["attempts"] == 1
        assert "unavailable" in listing[0]["last_error"]

        response = client.post(f"/api/dead-letters/{listing[0]['id']}/retry")
        assert response.status_code == 200
        assert response.json() == {"id": listing[0]["id"], "status": "queued"}

        poll(lambda: writer.written_contents == ["hello"])
        assert client.get("/api/dead-letters").json() == []

    def test_delete_dead_letter(self, client, writer):
        """Test a dead letter can be dropped for good."""
        writer.fail_insert_one = 1
        client.post("/api/messages", json={"content": "doomed"})
        poll(lambda: queue_status(client)["dead_letters"] == 1)
        entry_id = client.get("/api/dead-letters").json()[0]["id"]

        response = client.delete(f"/api/dead-letters/{entry_id}")

        assert response.status_code == 204
        assert client.get("/api/dead-letters").json() == []
        assert writer.written == []

    def test_unknown_dead_letter(self, client):
        """Test actions on unknown ids return 404."""
        assert client.post("/api/dead-letters/missing/retry").status_code == 404
        assert client.delete("/api/dead-letters/missing").status_code == 404


class TestObservabilityRoutes:
    """Tests for queue status and trace events."""

    def test_queue_status_idle(self, client):
        """Test status of an empty queue."""
        assert queue_status(client) == {
            "state": "idle",
            "session_id": None,
            "pending": 0,
            "dead_letters": 0,
            "retry_in_ms": None,
        }

    def test_trace_events(self, client, writer):
        """Test the queue's activity shows up as trace events."""
        client.post("/api/messages", json={"content": "hello"})

        def session_events() -> list:
            response = client.get(
                "/api/trace-events", params={"event_type": "session_assigned"}
            )
            assert response.status_code == 200
            return response.json()

        poll(lambda: session_events())
        events = session_events()
        assert len(events) == 1
        assert events[0]["data"]["session_id"] == "S1"

    def test_trace_events_several_types(self, client, writer):
        """Test filtering by a comma-separated list of event types."""
        client.post("/api/messages", json={"content": "hello"})
        poll(lambda: queue_status(client)["session_id"] == "S1")

        def types() -> set:
            response = client.get(
                "/api/trace-events",
                params={"event_type": "message_enqueued,session_assigned"},
            )
            return {e["event_type"] for e in response.json()}

        poll(lambda: types() == {"message_enqueued", "session_assigned"})

    def test_message_trace(self, client, writer):
        """Test following one message from enqueue to dead letter."""
        writer.fail_insert_one = 1
        message_id = client.post("/api/messages", json={"content": "hi"}).json()["id"]
        poll(lambda: queue_status(client)["dead_letters"] == 1)

        def trace() -> list:
            return [
                e["event_type"]
                for e in client.get(f"/api/messages/{message_id}/trace").json()
            ]

        poll(lambda: "message_dead_lettered" in trace())
        assert trace()[0] == "message_enqueued"
        assert "flush_failed" in trace()

    def test_message_trace_unknown(self, client):
        """Test a message with no recorded events."""
        assert client.get("/api/messages/missing/trace").status_code == 404

    def test_trace_events_invalid_after(self, client):
        """Test a malformed timestamp filter."""
        response = client.get("/api/trace-events", params={"after": "yesterday"})
        assert response.status_code == 400


class TestControlRoutes:
    """Tests for /api/control."""

    def test_start_conversation(self, client):
        """Test resuming an existing conversation by session id."""
        response = client.post("/api/control/conversation", json={"session_id": "S7"})

        assert response.status_code == 200
        assert queue_status(client)["session_id"] == "S7"

    def test_start_conversation_busy(self, client):
        """Test switching is refused while messages are pending."""
        client.post("/api/control/conversation", json={"session_id": "S7"})
        client.post("/api/messages", json={"content": "pending"})

        response = client.post("/api/control/conversation", json={})

        assert response.status_code == 409

    def test_flush(self, client, writer):
        """Test forcing a flush of an established session."""
        client.post("/api/control/conversation", json={"session_id": "S7"})
        client.post("/api/messages", json={"content": "now please"})

        response = client.post("/api/control/flush")

        assert response.status_code == 200
        assert response.json() == {"attempted": True, "pending": 0}
        assert writer.insert_batch_calls[0][1] == "S7"

    def test_reset(self, client):
        """Test reset empties the queue."""
        client.post("/api/control/conversation", json={"session_id": "S7"})

        response = client.post("/api/control/reset")

        assert response.status_code == 200
        assert queue_status(client)["session_id"] is None
