"""
Analytics component input/output models.

Event records are persisted; buckets, aggregates, rankings and
comparisons are derived per request and never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

# --- Enums ---


class EventType(str, Enum):
    """Tracked interaction types."""

    PAGE_VIEW = "page_view"
    UNIT_CLICK = "unit_click"
    UNIT_ACTION_CLICK = "unit_action_click"
    PRODUCT_VIEW = "product_view"
    SLIDE_VIEW = "slide_view"
    SLIDE_CLICK = "slide_click"


class Granularity(str, Enum):
    """Time bucket sizes."""

    DAY = "day"
    HOUR = "hour"


class Interaction(str, Enum):
    """What an aggregation counts an event as."""

    VIEW = "view"
    CLICK = "click"


class ActionType(str, Enum):
    """Unit contact actions carried in unit_action_click metadata."""

    WHATSAPP = "whatsapp"
    BUY_BUTTON = "buy_button"
    EMAIL = "email"
    MAPS = "maps"


# --- Event Models ---


@dataclass(frozen=True)
class NewEvent:
    """Validated event ready to append; id is assigned by the store."""

    event_type: str
    timestamp: datetime
    session_id: str
    entity_type: str | None = None
    entity_id: str | None = None
    user_id: str | None = None
    page_url: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class EventRecord:
    """Stored analytics event."""

    id: int
    event_type: str
    timestamp: datetime
    session_id: str
    entity_type: str | None = None
    entity_id: str | None = None
    user_id: str | None = None
    page_url: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class UnitAction:
    """Typed view of a unit_action_click payload."""

    unit_id: str | None
    action_type: ActionType | None
    raw_action_type: str | None = None


# --- Bucketing / Aggregation ---


@dataclass(frozen=True)
class Bucket:
    """Half-open [start, end) interval with display labels."""

    start: datetime
    end: datetime
    key: str
    label: str

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end


@dataclass(frozen=True)
class BucketMetrics:
    """Counts for one bucket."""

    bucket: Bucket
    views: int = 0
    clicks: int = 0
    unique_sessions: int = 0


@dataclass(frozen=True)
class AggregateResult:
    """Per-bucket series plus range-wide totals."""

    buckets: tuple[BucketMetrics, ...]
    total_views: int = 0
    total_clicks: int = 0
    unique_sessions: int = 0

    @property
    def click_through_rate(self) -> float:
        """Clicks per view as a percentage, two decimals."""
        if self.total_views == 0:
            return 0.0
        return round(self.total_clicks / self.total_views * 100, 2)


@dataclass(frozen=True)
class RankedEntry:
    """Entity key with its view and click counts."""

    key: str
    views: int
    clicks: int


@dataclass(frozen=True)
class CategoryMetrics:
    """Entity metrics summed into one category."""

    category_id: str
    views: int
    clicks: int
    entities: int


@dataclass(frozen=True)
class DateRange:
    """Resolved [start, end) query window."""

    start: datetime
    end: datetime
    period_days: int
    label: str

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start


@dataclass(frozen=True)
class Comparison:
    """Current window, preceding window and percentage deltas."""

    current_range: DateRange
    previous_range: DateRange
    current: AggregateResult
    previous: AggregateResult
    deltas: dict[str, str] = field(default_factory=dict)


# --- Catalog Display Data ---


@dataclass(frozen=True)
class ProductInfo:
    """Denormalized product display data."""

    id: str
    name: str
    slug: str | None = None
    category_id: str | None = None
    price: float | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class CategoryInfo:
    id: str
    name: str


@dataclass(frozen=True)
class UnitInfo:
    id: str
    name: str


@dataclass(frozen=True)
class SlideInfo:
    id: str
    title: str
    image_url: str | None = None
    mobile_image_url: str | None = None
    active: bool = True
    display_order: int = 0


# --- Input Models ---


@dataclass(frozen=True)
class RecordEventInput:
    """Raw event payload plus request context."""

    data: dict[str, Any]
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class RangeQueryInput:
    """Date-range selector shared by the aggregation entry points."""

    start_date: str | None = None
    end_date: str | None = None
    period: str | None = None
    days: int | None = None
    granularity: Literal["day", "hour"] = "day"
    limit: int | None = None


# --- Output Models ---


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one record() call."""

    accepted: bool
    event_id: int | None = None
    reason: str | None = None

    @property
    def duplicate(self) -> bool:
        return not self.accepted and self.reason == "duplicate"


@dataclass(frozen=True)
class DashboardOutput:
    daily_views: int
    daily_unit_clicks: int
    series: AggregateResult
    range: DateRange
    generated_at: datetime


@dataclass(frozen=True)
class SourceCount:
    name: str
    count: int
    percentage: float


@dataclass(frozen=True)
class PageStats:
    page_url: str
    views: int
    unique_sessions: int


@dataclass(frozen=True)
class TrafficOutput:
    series: AggregateResult
    top_pages: tuple[PageStats, ...]
    sources: tuple[SourceCount, ...]
    devices: tuple[SourceCount, ...]
    range: DateRange
    generated_at: datetime


@dataclass(frozen=True)
class ProductRanking:
    entry: RankedEntry
    product: ProductInfo


@dataclass(frozen=True)
class CategoryRanking:
    category: CategoryInfo
    metrics: CategoryMetrics
    total_products: int


@dataclass(frozen=True)
class ProductsOutput:
    total_products: int
    most_viewed: tuple[ProductRanking, ...]
    categories: tuple[CategoryRanking, ...]
    total_views: int
    products_with_views: int
    avg_views_per_product: float
    range: DateRange
    generated_at: datetime


@dataclass(frozen=True)
class OverviewMetric:
    value: float
    change: str
    increasing: bool


@dataclass(frozen=True)
class OverviewOutput:
    visitors: OverviewMetric
    page_views: OverviewMetric
    unit_clicks: OverviewMetric
    conversion_rate: OverviewMetric
    comparison: Comparison
    generated_at: datetime


@dataclass(frozen=True)
class UnitStats:
    unit: UnitInfo
    views: int
    clicks: int
    whatsapp_clicks: int
    conversion_rate: float
    trend: str


@dataclass(frozen=True)
class UnitsOutput:
    units: tuple[UnitStats, ...]
    range: DateRange
    generated_at: datetime


@dataclass(frozen=True)
class SlideStats:
    slide: SlideInfo
    views: int
    clicks: int
    click_rate: float
    devices: dict[str, int]


@dataclass(frozen=True)
class SlidesOutput:
    slides: tuple[SlideStats, ...]
    total_views: int
    total_clicks: int
    avg_click_rate: float
    range: DateRange
    generated_at: datetime


@dataclass(frozen=True)
class PurgeOutput:
    deleted: int
    cutoff: datetime
