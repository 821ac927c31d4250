"""
Analytics component - Event ingestion and dashboard aggregation.

Every entry point reads one snapshot of events for its window(s) and
computes the payload purely from it. Nothing is cached between calls.

Invariants:
- Server clock is authoritative for event timestamps
- Each counted event lands in exactly one bucket
- Repeated calls over the same events give identical payloads
- Store failures surface whole; no partial payloads are returned
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from partsdash.rules.models import AnalyticsRules

from ._aggregate import count_sessions
from ._classify import (
    dashboard_classifier,
    is_whatsapp_action,
    product_classifier,
    slide_classifier,
    traffic_classifier,
    unit_classifier,
)
from ._compare import aggregate_range, compare_results, delta_pct, previous_range
from ._context import classify_device, classify_traffic_source, device_breakdown, share_of
from ._ingest import IngestionGuard
from ._range import resolve_range, today_range
from ._rank import count_by_key, entity_key, page_key, rank_entries
from ._rollup import rollup_by_category
from .config import IngestionConfig, QueryConfig
from .models import (
    CategoryInfo,
    CategoryMetrics,
    CategoryRanking,
    DashboardOutput,
    DateRange,
    EventRecord,
    EventType,
    Granularity,
    IngestResult,
    OverviewMetric,
    OverviewOutput,
    PageStats,
    ProductRanking,
    ProductsOutput,
    PurgeOutput,
    RangeQueryInput,
    RecordEventInput,
    SlidesOutput,
    SlideStats,
    TrafficOutput,
    UnitsOutput,
    UnitStats,
)
from .ports import CatalogPort, EventStorePort, TimePort

logger = logging.getLogger(__name__)

_DASHBOARD_TYPES = (
    EventType.PAGE_VIEW.value,
    EventType.UNIT_CLICK.value,
    EventType.UNIT_ACTION_CLICK.value,
)
_PRODUCT_TYPES = (EventType.PRODUCT_VIEW.value, EventType.UNIT_CLICK.value)
_PRODUCT_PAGE_TYPES = frozenset({EventType.PAGE_VIEW.value, EventType.PRODUCT_VIEW.value})
_SLIDE_TYPES = (EventType.SLIDE_VIEW.value, EventType.SLIDE_CLICK.value)


# --- Configuration ---


def build_ingestion_config(rules: AnalyticsRules | None) -> IngestionConfig:
    """Build ingestion config from the analytics rules section."""
    if rules is None:
        return IngestionConfig()

    return IngestionConfig(
        allowed_event_types=frozenset(rules.allowed_event_types),
        dedupe_window_seconds=rules.dedupe_window_seconds,
        max_page_url_length=rules.field_limits.page_url,
        max_user_agent_length=rules.field_limits.user_agent,
        max_ip_address_length=rules.field_limits.ip_address,
    )


def build_query_config(rules: AnalyticsRules | None) -> QueryConfig:
    """Build query config from the analytics rules section."""
    if rules is None:
        return QueryConfig()

    return QueryConfig(
        timezone=rules.timezone,
        default_days=rules.default_days,
        period_tokens=dict(rules.period_tokens),
        top_n=rules.top_n,
        retention_days=rules.retention_days,
        click_action_types=frozenset(rules.click_action_types),
    )


# --- Helpers ---


def _fetch(
    event_store: EventStorePort,
    window: DateRange,
    event_types: Sequence[str] | None = None,
    entity_type: str | None = None,
) -> list[EventRecord]:
    if window.is_empty:
        return []
    return event_store.list_range(
        window.start,
        window.end,
        event_types=event_types,
        entity_type=entity_type,
    )


def _fetch_windows(
    event_store: EventStorePort,
    windows: Sequence[DateRange],
    event_types: Sequence[str] | None = None,
    entity_type: str | None = None,
) -> list[list[EventRecord]]:
    """Read several windows concurrently; the first failure propagates."""
    with ThreadPoolExecutor(max_workers=len(windows)) as pool:
        futures = [
            pool.submit(_fetch, event_store, window, event_types, entity_type)
            for window in windows
        ]
        return [f.result() for f in futures]


def _rate(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


def _limit(inp: RangeQueryInput, config: QueryConfig) -> int:
    return inp.limit if inp.limit is not None else config.top_n


def _metric(current: float, previous: float) -> OverviewMetric:
    return OverviewMetric(
        value=current,
        change=delta_pct(current, previous),
        increasing=current >= previous,
    )


# --- Component Entry Points ---


def run_record(
    inp: RecordEventInput,
    *,
    event_store: EventStorePort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> IngestResult:
    """
    Validate and store one tracking event.

    Raises:
        ValidationError: Missing event type or malformed fields.
        InvalidEventType: Event type outside the allow-list.
        StorageUnavailable: Store lookup or insert failed.
    """
    guard = IngestionGuard(
        event_store=event_store,
        time_port=time_port,
        config=build_ingestion_config(rules),
    )
    return guard.record(inp.data, ip_address=inp.ip_address, user_agent=inp.user_agent)


def run_dashboard(
    inp: RangeQueryInput,
    *,
    event_store: EventStorePort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> DashboardOutput:
    """
    Today's views/clicks plus the per-bucket series for the range.

    Page views are views; unit clicks and counted unit actions are clicks.
    """
    config = build_query_config(rules)
    now = time_port.now_utc()
    rng = resolve_range(inp, now, config)
    today = today_range(now, config.timezone)
    classifier = dashboard_classifier(config.click_action_types)

    range_events, today_events = _fetch_windows(
        event_store, [rng, today], event_types=_DASHBOARD_TYPES
    )

    series = aggregate_range(
        range_events, rng, classifier, Granularity(inp.granularity), config.timezone
    )
    today_totals = aggregate_range(today_events, today, classifier, Granularity.DAY, config.timezone)

    return DashboardOutput(
        daily_views=today_totals.total_views,
        daily_unit_clicks=today_totals.total_clicks,
        series=series,
        range=rng,
        generated_at=now,
    )


def run_traffic(
    inp: RangeQueryInput,
    *,
    event_store: EventStorePort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> TrafficOutput:
    """Page-view series with top pages, traffic sources and devices."""
    config = build_query_config(rules)
    now = time_port.now_utc()
    rng = resolve_range(inp, now, config)

    events = _fetch(event_store, rng, event_types=(EventType.PAGE_VIEW.value,))
    series = aggregate_range(
        events, rng, traffic_classifier, Granularity(inp.granularity), config.timezone
    )

    page_sessions: dict[str, set[str]] = {}
    sources: dict[str, int] = {}
    devices: dict[str, int] = {}
    for event in events:
        page_sessions.setdefault(event.page_url or "/", set()).add(event.session_id)
        source = classify_traffic_source(event.page_url, event.user_agent).value
        sources[source] = sources.get(source, 0) + 1
        device = classify_device(event.user_agent).value.capitalize()
        devices[device] = devices.get(device, 0) + 1

    ranked = rank_entries(count_by_key(events, page_key, traffic_classifier).values())
    top_pages = tuple(
        PageStats(
            page_url=entry.key,
            views=entry.views,
            unique_sessions=len(page_sessions.get(entry.key, ())),
        )
        for entry in ranked[: _limit(inp, config)]
    )

    return TrafficOutput(
        series=series,
        top_pages=top_pages,
        sources=share_of(sources),
        devices=share_of(devices),
        range=rng,
        generated_at=now,
    )


def run_products(
    inp: RangeQueryInput,
    *,
    event_store: EventStorePort,
    catalog: CatalogPort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> ProductsOutput:
    """
    Most viewed products with display data, plus the category rollup.

    Products deleted since their events were recorded are left out of
    the ranking but still count towards the stats.
    """
    config = build_query_config(rules)
    now = time_port.now_utc()
    rng = resolve_range(inp, now, config)

    events = _fetch(event_store, rng, event_types=_PRODUCT_TYPES, entity_type="product")
    per_product = count_by_key(events, entity_key, product_classifier)
    ranked = rank_entries(per_product.values())

    product_ids = [entry.key for entry in ranked]
    products = catalog.get_products(product_ids)
    most_viewed = tuple(
        ProductRanking(entry=entry, product=products[entry.key])
        for entry in ranked
        if entry.key in products
    )[: _limit(inp, config)]

    categories = {c.id: c for c in catalog.list_categories()}
    active_counts = catalog.count_active_products()
    rollup = rollup_by_category(
        per_product.values(), catalog.get_product_categories(product_ids)
    )
    category_rankings = tuple(
        CategoryRanking(
            category=categories.get(m.category_id)
            or CategoryInfo(id=m.category_id, name=m.category_id),
            metrics=m,
            total_products=active_counts.get(m.category_id, 0),
        )
        for m in rollup
    )
    # Categories without activity still show with their product counts
    seen = {m.category_id for m in rollup}
    category_rankings += tuple(
        CategoryRanking(
            category=c,
            metrics=CategoryMetrics(category_id=c.id, views=0, clicks=0, entities=0),
            total_products=active_counts.get(c.id, 0),
        )
        for c in categories.values()
        if c.id not in seen
    )

    total_views = sum(entry.views for entry in ranked)
    with_views = sum(1 for entry in ranked if entry.views > 0)
    avg_views = round(total_views / with_views, 2) if with_views else 0.0

    return ProductsOutput(
        total_products=sum(active_counts.values()),
        most_viewed=most_viewed,
        categories=category_rankings,
        total_views=total_views,
        products_with_views=with_views,
        avg_views_per_product=avg_views,
        range=rng,
        generated_at=now,
    )


def run_overview(
    inp: RangeQueryInput,
    *,
    event_store: EventStorePort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> OverviewOutput:
    """
    Headline metrics for the range against the equal-length window before it.

    Visitors are distinct session ids over every event type; conversion
    rate is clicks per product page view.
    """
    config = build_query_config(rules)
    now = time_port.now_utc()
    rng = resolve_range(inp, now, config)
    prev = previous_range(rng)
    classifier = dashboard_classifier(config.click_action_types)
    granularity = Granularity(inp.granularity)

    current_events, previous_events = _fetch_windows(event_store, [rng, prev])

    current = aggregate_range(current_events, rng, classifier, granularity, config.timezone)
    previous = aggregate_range(previous_events, prev, classifier, granularity, config.timezone)
    comparison = compare_results(rng, prev, current, previous)

    def product_page_views(events: list[EventRecord]) -> int:
        return sum(
            1
            for e in events
            if e.entity_type == "product" and e.event_type in _PRODUCT_PAGE_TYPES
        )

    return OverviewOutput(
        visitors=_metric(count_sessions(current_events), count_sessions(previous_events)),
        page_views=_metric(current.total_views, previous.total_views),
        unit_clicks=_metric(current.total_clicks, previous.total_clicks),
        conversion_rate=_metric(
            _rate(current.total_clicks, product_page_views(current_events)),
            _rate(previous.total_clicks, product_page_views(previous_events)),
        ),
        comparison=comparison,
        generated_at=now,
    )


def run_units(
    inp: RangeQueryInput,
    *,
    event_store: EventStorePort,
    catalog: CatalogPort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> UnitsOutput:
    """Per-unit views, clicks and WhatsApp clicks with a views trend."""
    config = build_query_config(rules)
    now = time_port.now_utc()
    rng = resolve_range(inp, now, config)
    prev = previous_range(rng)
    classifier = unit_classifier(config.click_action_types)

    current_events, previous_events = _fetch_windows(
        event_store, [rng, prev], entity_type="unit"
    )
    current = count_by_key(current_events, entity_key, classifier)
    previous = count_by_key(previous_events, entity_key, classifier)

    whatsapp: dict[str, int] = {}
    for event in current_events:
        if event.entity_id and is_whatsapp_action(event):
            whatsapp[event.entity_id] = whatsapp.get(event.entity_id, 0) + 1

    stats = []
    for unit in catalog.list_units():
        entry = current.get(unit.id)
        views = entry.views if entry else 0
        clicks = entry.clicks if entry else 0
        prev_entry = previous.get(unit.id)
        stats.append(
            UnitStats(
                unit=unit,
                views=views,
                clicks=clicks,
                whatsapp_clicks=whatsapp.get(unit.id, 0),
                conversion_rate=_rate(clicks, views),
                trend=delta_pct(views, prev_entry.views if prev_entry else 0),
            )
        )
    stats.sort(key=lambda s: (-s.views, -s.clicks))

    return UnitsOutput(units=tuple(stats), range=rng, generated_at=now)


def run_slides(
    inp: RangeQueryInput,
    *,
    event_store: EventStorePort,
    catalog: CatalogPort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> SlidesOutput:
    """
    Per-slide views, clicks, click rate and device breakdown of views.

    Every slide is listed, including those with no activity. Totals
    cover all slide events in the range.
    """
    config = build_query_config(rules)
    now = time_port.now_utc()
    rng = resolve_range(inp, now, config)

    events = _fetch(event_store, rng, event_types=_SLIDE_TYPES, entity_type="slide")
    per_slide = count_by_key(events, entity_key, slide_classifier)

    views_by_slide: dict[str, list[EventRecord]] = {}
    for event in events:
        if event.entity_id and event.event_type == EventType.SLIDE_VIEW.value:
            views_by_slide.setdefault(event.entity_id, []).append(event)

    slides = []
    for slide in catalog.list_slides():
        entry = per_slide.get(slide.id)
        views = entry.views if entry else 0
        clicks = entry.clicks if entry else 0
        slides.append(
            SlideStats(
                slide=slide,
                views=views,
                clicks=clicks,
                click_rate=_rate(clicks, views),
                devices=device_breakdown(views_by_slide.get(slide.id, ())),
            )
        )

    total_views = sum(entry.views for entry in per_slide.values())
    total_clicks = sum(entry.clicks for entry in per_slide.values())

    return SlidesOutput(
        slides=tuple(slides),
        total_views=total_views,
        total_clicks=total_clicks,
        avg_click_rate=_rate(total_clicks, total_views),
        range=rng,
        generated_at=now,
    )


def run_purge(
    *,
    event_store: EventStorePort,
    time_port: TimePort,
    rules: AnalyticsRules | None = None,
) -> PurgeOutput:
    """Delete events older than the retention window. Safe to repeat."""
    config = build_query_config(rules)
    cutoff = time_port.now_utc() - timedelta(days=config.retention_days)

    deleted = event_store.purge_before(cutoff)
    logger.info("Purged %d analytics events older than %s", deleted, cutoff.isoformat())

    return PurgeOutput(deleted=deleted, cutoff=cutoff)
