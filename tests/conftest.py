import itertools
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from partsdash.adapters.memory import InMemoryCatalog, InMemoryEventStore
from partsdash.adapters.sqlite.migrator import SQLiteMigrator
from partsdash.components.analytics import (
    CategoryInfo,
    EventRecord,
    NewEvent,
    ProductInfo,
    SlideInfo,
    UnitInfo,
)

NOW = datetime(2025, 1, 2, 12, 0, tzinfo=UTC)


class MockTimePort:
    """Mock time provider."""

    def __init__(self, now: datetime | None = None) -> None:
        self._now = now or NOW

    def now_utc(self) -> datetime:
        return self._now

    def set_now(self, now: datetime) -> None:
        self._now = now

    def advance(self, seconds: int) -> None:
        self._now += timedelta(seconds=seconds)


@pytest.fixture
def time_port() -> MockTimePort:
    """Clock fixed at 2025-01-02 12:00 UTC."""
    return MockTimePort()


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    """Small catalog: two categories, one uncategorized product, units and slides."""
    return InMemoryCatalog(
        products=[
            ProductInfo(id="p1", name="Brake Pad", slug="brake-pad", category_id="brakes",
                        price=120.0, image_url="/img/p1.jpg"),
            ProductInfo(id="p2", name="Brake Disc", slug="brake-disc", category_id="brakes",
                        price=340.0),
            ProductInfo(id="p3", name="Oil Filter", slug="oil-filter", category_id="engine",
                        price=45.5),
            ProductInfo(id="p4", name="Gift Card", slug="gift-card", category_id=None),
        ],
        categories=[
            CategoryInfo(id="brakes", name="Freios"),
            CategoryInfo(id="engine", name="Motor"),
        ],
        units=[
            UnitInfo(id="u1", name="Centro"),
            UnitInfo(id="u2", name="Zona Sul"),
        ],
        slides=[
            SlideInfo(id="s-a", title="Promo", display_order=1),
            SlideInfo(id="s-b", title="Frete", display_order=2),
        ],
    )


@pytest.fixture
def add_event(event_store: InMemoryEventStore) -> Callable[..., EventRecord]:
    """Append an event to the in-memory store at a given timestamp."""

    def _add(
        event_type: str = "page_view",
        ts: datetime = NOW,
        session_id: str = "s1",
        **fields: Any,
    ) -> EventRecord:
        return event_store.append(
            NewEvent(event_type=event_type, timestamp=ts, session_id=session_id, **fields)
        )

    return _add


@pytest.fixture
def make_event() -> Callable[..., EventRecord]:
    """Build a stored-looking event without a store."""
    ids = itertools.count(1)

    def _make(
        event_type: str = "page_view",
        ts: datetime = NOW,
        session_id: str = "s1",
        **fields: Any,
    ) -> EventRecord:
        return EventRecord(
            id=next(ids), event_type=event_type, timestamp=ts, session_id=session_id, **fields
        )

    return _make


@pytest.fixture
def db_path(tmp_path) -> str:
    """Migrated SQLite database in a temp dir."""
    path = str(tmp_path / "partsdash.db")
    SQLiteMigrator(path).run_migrations()
    return path
