"""
In-memory event store and catalog for tests and local development.

Both satisfy the same ports as the SQLite adapters. The event store
assigns ids from a monotonic counter and keeps insertion order.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Iterable, Sequence
from dataclasses import asdict
from datetime import datetime

from partsdash.components.analytics import (
    CategoryInfo,
    EventRecord,
    NewEvent,
    ProductInfo,
    SlideInfo,
    UnitInfo,
)
from partsdash.components.analytics._buckets import ensure_utc


class InMemoryEventStore:
    """In-memory event store for testing/dev."""

    def __init__(self) -> None:
        self._events: list[EventRecord] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def append(self, event: NewEvent) -> EventRecord:
        with self._lock:
            record = EventRecord(id=next(self._ids), **asdict(event))
            self._events.append(record)
        return record

    def has_recent(
        self,
        event_type: str,
        session_id: str,
        page_url: str,
        since: datetime,
    ) -> bool:
        since = ensure_utc(since)
        return any(
            e.event_type == event_type
            and e.session_id == session_id
            and e.page_url == page_url
            and ensure_utc(e.timestamp) >= since
            for e in self._events
        )

    def list_range(
        self,
        start: datetime,
        end: datetime,
        event_types: Sequence[str] | None = None,
        entity_type: str | None = None,
    ) -> list[EventRecord]:
        start = ensure_utc(start)
        end = ensure_utc(end)
        types = set(event_types) if event_types is not None else None

        matched = [
            e
            for e in self._events
            if start <= ensure_utc(e.timestamp) < end
            and (types is None or e.event_type in types)
            and (entity_type is None or e.entity_type == entity_type)
        ]
        return sorted(matched, key=lambda e: (ensure_utc(e.timestamp), e.id))

    def count_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for e in self._events:
            counts[e.event_type] = counts.get(e.event_type, 0) + 1
        return counts

    def purge_before(self, cutoff: datetime) -> int:
        cutoff = ensure_utc(cutoff)
        with self._lock:
            kept = [e for e in self._events if ensure_utc(e.timestamp) >= cutoff]
            deleted = len(self._events) - len(kept)
            self._events = kept
        return deleted

    def get_all(self) -> list[EventRecord]:
        """Get all stored events (for testing)."""
        return list(self._events)


class InMemoryCatalog:
    """In-memory catalog lookups for testing/dev."""

    def __init__(
        self,
        products: Iterable[ProductInfo] = (),
        categories: Iterable[CategoryInfo] = (),
        units: Iterable[UnitInfo] = (),
        slides: Iterable[SlideInfo] = (),
        inactive_product_ids: Iterable[str] = (),
    ) -> None:
        self._products = {p.id: p for p in products}
        self._categories = list(categories)
        self._units = list(units)
        self._slides = list(slides)
        self._inactive = set(inactive_product_ids)

    def get_products(self, product_ids: Iterable[str]) -> dict[str, ProductInfo]:
        return {pid: self._products[pid] for pid in product_ids if pid in self._products}

    def get_product_categories(self, product_ids: Iterable[str]) -> dict[str, str]:
        return {
            pid: self._products[pid].category_id
            for pid in product_ids
            if pid in self._products and self._products[pid].category_id
        }

    def list_categories(self) -> list[CategoryInfo]:
        return sorted(self._categories, key=lambda c: c.name)

    def count_active_products(self) -> dict[str | None, int]:
        counts: dict[str | None, int] = {}
        for product in self._products.values():
            if product.id in self._inactive:
                continue
            counts[product.category_id] = counts.get(product.category_id, 0) + 1
        return counts

    def list_units(self) -> list[UnitInfo]:
        return sorted(self._units, key=lambda u: u.name)

    def list_slides(self) -> list[SlideInfo]:
        return sorted(self._slides, key=lambda s: s.display_order)
