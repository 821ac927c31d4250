"""
Tests for the analytics ingestion API.

POST /record-event validates and stores tracking events; GET
/record-event reports per-type counts.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from partsdash.adapters.memory import InMemoryEventStore
from partsdash.api.deps import get_analytics_rules, get_clock, get_event_store
from partsdash.api.errors import register_error_handlers
from partsdash.api.routes.analytics_ingest import router
from partsdash.components.analytics import StorageUnavailable
from partsdash.rules.models import AnalyticsRules

# --- Test Client Setup ---


class DownEventStore(InMemoryEventStore):
    def append(self, event):
        raise StorageUnavailable("database is locked")

    def has_recent(self, *args, **kwargs) -> bool:
        return False


@pytest.fixture
def app(event_store: InMemoryEventStore, time_port) -> FastAPI:
    """Test app with the ingest routes on in-memory ports."""
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(router, prefix="/api/analytics")

    app.dependency_overrides[get_event_store] = lambda: event_store
    app.dependency_overrides[get_clock] = lambda: time_port
    app.dependency_overrides[get_analytics_rules] = lambda: AnalyticsRules()

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


# --- Recording ---


class TestRecordEvent:
    def test_page_view_accepted(self, client: TestClient) -> None:
        response = client.post(
            "/api/analytics/record-event",
            json={"event_type": "page_view", "session_id": "s1", "page_url": "/"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "event_id": 1}

    def test_request_context_captured(self, client: TestClient, event_store) -> None:
        client.post(
            "/api/analytics/record-event",
            json={"event_type": "unit_click", "entity_type": "unit", "entity_id": "u1"},
            headers={
                "user-agent": "Mozilla/5.0 (iPhone)",
                "x-forwarded-for": "203.0.113.7, 10.0.0.1",
            },
        )

        stored = event_store.get_all()[0]
        assert stored.ip_address == "203.0.113.7"
        assert stored.user_agent == "Mozilla/5.0 (iPhone)"
        assert stored.session_id.startswith("session_")

    def test_real_ip_header(self, client: TestClient, event_store) -> None:
        client.post(
            "/api/analytics/record-event",
            json={"event_type": "slide_view"},
            headers={"x-real-ip": "198.51.100.4"},
        )

        assert event_store.get_all()[0].ip_address == "198.51.100.4"

    def test_socket_peer_fallback(self, client: TestClient, event_store) -> None:
        client.post("/api/analytics/record-event", json={"event_type": "slide_view"})

        assert event_store.get_all()[0].ip_address == "testclient"

    def test_client_timestamp_ignored(self, client: TestClient, event_store, time_port) -> None:
        client.post(
            "/api/analytics/record-event",
            json={"event_type": "page_view", "timestamp": "2001-01-01T00:00:00Z"},
        )

        assert event_store.get_all()[0].timestamp == time_port.now_utc()

    def test_repeat_page_view_is_duplicate(self, client: TestClient, event_store) -> None:
        body = {"event_type": "page_view", "session_id": "s1", "page_url": "/produtos"}

        client.post("/api/analytics/record-event", json=body)
        response = client.post("/api/analytics/record-event", json=body)

        assert response.status_code == 200
        assert response.json() == {"success": True, "duplicate": True}
        assert len(event_store.get_all()) == 1


class TestRecordEventErrors:
    def test_invalid_event_type(self, client: TestClient) -> None:
        response = client.post("/api/analytics/record-event", json={"event_type": "checkout"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "checkout" in body["error"]

    def test_missing_event_type(self, client: TestClient) -> None:
        response = client.post("/api/analytics/record-event", json={"page_url": "/"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_body_must_be_object(self, client: TestClient) -> None:
        response = client.post("/api/analytics/record-event", json=["page_view"])

        assert response.status_code == 422

    def test_storage_failure(self, app: FastAPI, time_port) -> None:
        app.dependency_overrides[get_event_store] = lambda: DownEventStore()
        client = TestClient(app)

        response = client.post("/api/analytics/record-event", json={"event_type": "unit_click"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "database is locked"}


# --- Stats ---


class TestEventStats:
    def test_counts_by_type(self, client: TestClient) -> None:
        for event_type in ("page_view", "unit_click", "unit_click", "slide_view"):
            client.post("/api/analytics/record-event", json={"event_type": event_type})

        response = client.get("/api/analytics/record-event")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "total_events": 4,
            "page_views": 1,
            "unit_clicks": 2,
            "by_type": {"page_view": 1, "unit_click": 2, "slide_view": 1},
        }

    def test_empty_store(self, client: TestClient) -> None:
        assert client.get("/api/analytics/record-event").json()["total_events"] == 0
