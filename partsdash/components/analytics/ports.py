"""
Analytics component port definitions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from .models import (
    CategoryInfo,
    EventRecord,
    NewEvent,
    ProductInfo,
    SlideInfo,
    UnitInfo,
)


class EventStorePort(Protocol):
    """Append-only analytics event log."""

    def append(self, event: NewEvent) -> EventRecord:
        """Insert one event; the store assigns a monotonic id."""
        ...

    def has_recent(
        self,
        event_type: str,
        session_id: str,
        page_url: str,
        since: datetime,
    ) -> bool:
        """True if a matching event exists with timestamp >= since."""
        ...

    def list_range(
        self,
        start: datetime,
        end: datetime,
        event_types: Sequence[str] | None = None,
        entity_type: str | None = None,
    ) -> list[EventRecord]:
        """Events with start <= timestamp < end, ascending by timestamp."""
        ...

    def count_by_type(self) -> dict[str, int]:
        """Event counts grouped by event type."""
        ...

    def purge_before(self, cutoff: datetime) -> int:
        """Delete events older than cutoff. Returns rows removed."""
        ...


class CatalogPort(Protocol):
    """Read-only product/category/unit/slide lookups."""

    def get_products(self, product_ids: Iterable[str]) -> dict[str, ProductInfo]:
        """Bulk lookup; ids that no longer exist are absent from the result."""
        ...

    def get_product_categories(self, product_ids: Iterable[str]) -> dict[str, str]:
        """Bulk product id -> category id lookup."""
        ...

    def list_categories(self) -> list[CategoryInfo]:
        ...

    def count_active_products(self) -> dict[str | None, int]:
        """Active product counts keyed by category id."""
        ...

    def list_units(self) -> list[UnitInfo]:
        """Active units ordered by name."""
        ...

    def list_slides(self) -> list[SlideInfo]:
        """All slides ordered by display order."""
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
