"""
Tests for the ingestion guard.

Covers validation, server-side timestamps, session synthesis, field
truncation and page-view duplicate suppression.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest

from partsdash.adapters.memory import InMemoryEventStore
from partsdash.components.analytics import (
    IngestionConfig,
    IngestionGuard,
    InvalidEventType,
    NewEvent,
    RecordEventInput,
    StorageUnavailable,
    ValidationError,
    create_ingestion_guard,
    run_record,
)
from partsdash.rules.models import AnalyticsRules


class FailingEventStore(InMemoryEventStore):
    """Store whose writes always fail."""

    def append(self, event: NewEvent):
        raise StorageUnavailable("database is locked")


@pytest.fixture
def guard(event_store: InMemoryEventStore, time_port) -> IngestionGuard:
    return create_ingestion_guard(event_store, time_port)


def page_view(session_id: str = "sess-1", page_url: str = "/produtos") -> dict:
    return {"event_type": "page_view", "session_id": session_id, "page_url": page_url}


# --- Validation ---


class TestValidation:
    """Event type allow-list and field shapes."""

    def test_accepted_event_gets_id(self, guard: IngestionGuard) -> None:
        result = guard.record(page_view())

        assert result.accepted is True
        assert result.event_id == 1
        assert result.duplicate is False

    def test_ids_increase(self, guard: IngestionGuard) -> None:
        first = guard.record({"event_type": "unit_click", "session_id": "a"})
        second = guard.record({"event_type": "unit_click", "session_id": "a"})

        assert second.event_id > first.event_id

    def test_missing_event_type(self, guard: IngestionGuard) -> None:
        with pytest.raises(ValidationError) as exc:
            guard.record({"page_url": "/"})

        assert exc.value.errors[0].code == "event_type_required"
        assert exc.value.status_code == 400

    def test_unknown_event_type(self, guard: IngestionGuard) -> None:
        with pytest.raises(InvalidEventType) as exc:
            guard.record({"event_type": "add_to_cart"})

        assert exc.value.event_type == "add_to_cart"
        assert exc.value.errors[0].code == "invalid_event_type"

    def test_configured_allow_list(self, event_store, time_port) -> None:
        guard = IngestionGuard(
            event_store,
            time_port,
            IngestionConfig(allowed_event_types=frozenset({"page_view"})),
        )

        with pytest.raises(InvalidEventType):
            guard.record({"event_type": "slide_view"})

    def test_non_string_field_rejected(self, guard: IngestionGuard) -> None:
        with pytest.raises(ValidationError) as exc:
            guard.record({"event_type": "product_view", "entity_id": 42})

        assert exc.value.errors[0].field_name == "entity_id"

    def test_metadata_must_be_object(self, guard: IngestionGuard) -> None:
        with pytest.raises(ValidationError) as exc:
            guard.record({"event_type": "unit_action_click", "metadata": ["whatsapp"]})

        assert exc.value.errors[0].code == "invalid_metadata"

    def test_nothing_stored_on_rejection(self, guard, event_store) -> None:
        with pytest.raises(ValidationError):
            guard.record({"event_type": ""})

        assert event_store.get_all() == []


# --- Stored Event ---


class TestStoredEvent:
    def test_server_clock_wins(self, guard, event_store, time_port) -> None:
        guard.record({**page_view(), "timestamp": "1999-01-01T00:00:00Z"})

        stored = event_store.get_all()[0]
        assert stored.timestamp == time_port.now_utc()

    def test_session_synthesized_when_missing(self, guard, event_store) -> None:
        guard.record({"event_type": "slide_view", "entity_type": "slide", "entity_id": "s-a"})

        session_id = event_store.get_all()[0].session_id
        assert re.fullmatch(r"session_\d+_[a-z0-9]{9}", session_id)

    def test_context_fields_truncated(self, guard, event_store) -> None:
        guard.record(
            {"event_type": "page_view", "session_id": "s", "page_url": "/" + "x" * 5000},
            ip_address="203.0.113.9",
            user_agent="U" * 400,
        )

        stored = event_store.get_all()[0]
        assert len(stored.page_url) == 2048
        assert len(stored.user_agent) == 255
        assert stored.ip_address == "203.0.113.9"

    def test_metadata_kept_opaque(self, guard, event_store) -> None:
        guard.record(
            {
                "event_type": "unit_action_click",
                "session_id": "s",
                "entity_type": "unit",
                "entity_id": "u1",
                "metadata": {"action_type": "whatsapp", "phone": "+55 11 99999-0000"},
            }
        )

        stored = event_store.get_all()[0]
        assert stored.metadata == {"action_type": "whatsapp", "phone": "+55 11 99999-0000"}
        assert stored.entity_id == "u1"


# --- Duplicate Suppression ---


class TestDedupe:
    """Repeated page views for the same session and page."""

    def test_repeat_within_window_is_duplicate(self, guard, event_store, time_port) -> None:
        guard.record(page_view())
        time_port.advance(5)

        result = guard.record(page_view())

        assert result.accepted is False
        assert result.duplicate is True
        assert result.event_id is None
        assert len(event_store.get_all()) == 1

    def test_repeat_after_window_is_accepted(self, guard, event_store, time_port) -> None:
        guard.record(page_view())
        time_port.advance(40)

        result = guard.record(page_view())

        assert result.accepted is True
        assert len(event_store.get_all()) == 2

    def test_other_page_not_duplicate(self, guard, time_port) -> None:
        guard.record(page_view(page_url="/a"))
        time_port.advance(1)

        assert guard.record(page_view(page_url="/b")).accepted is True

    def test_other_session_not_duplicate(self, guard, time_port) -> None:
        guard.record(page_view(session_id="one"))
        time_port.advance(1)

        assert guard.record(page_view(session_id="two")).accepted is True

    def test_only_page_views_deduplicated(self, guard, event_store) -> None:
        click = {"event_type": "unit_click", "session_id": "s", "page_url": "/u1"}

        guard.record(click)
        guard.record(click)

        assert len(event_store.get_all()) == 2

    def test_page_view_without_url_not_deduplicated(self, guard, event_store) -> None:
        guard.record({"event_type": "page_view", "session_id": "s"})
        guard.record({"event_type": "page_view", "session_id": "s"})

        assert len(event_store.get_all()) == 2

    def test_configured_window(self, event_store, time_port) -> None:
        rules = AnalyticsRules(dedupe_window_seconds=60)
        inp = RecordEventInput(data=page_view())

        run_record(inp, event_store=event_store, time_port=time_port, rules=rules)
        time_port.advance(45)
        result = run_record(inp, event_store=event_store, time_port=time_port, rules=rules)

        assert result.duplicate is True


# --- Storage Failures ---


class TestStorageFailure:
    def test_store_failure_propagates(self, time_port) -> None:
        guard = IngestionGuard(FailingEventStore(), time_port)

        with pytest.raises(StorageUnavailable):
            guard.record(page_view())

    def test_storage_error_maps_to_500(self) -> None:
        assert StorageUnavailable("x").status_code == 500


def test_any_time_port(event_store) -> None:
    """Any object with now_utc() can drive the guard."""

    class Clock:
        def now_utc(self) -> datetime:
            return datetime(2025, 6, 1, tzinfo=UTC)

    result = IngestionGuard(event_store, Clock()).record(page_view())

    assert result.accepted is True
    assert event_store.get_all()[0].timestamp == datetime(2025, 6, 1, tzinfo=UTC)
