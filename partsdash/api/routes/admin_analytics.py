"""
Admin Analytics API.

Read-only dashboard views over the event log plus the retention sweep.
Every view resolves its date range the same way (startDate/endDate,
then period, then days) and reports period_days and generated_at.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from partsdash.api.deps import get_analytics_rules, get_catalog, get_clock, get_event_store
from partsdash.components.analytics import (
    AggregateResult,
    CatalogPort,
    DateRange,
    EventStorePort,
    RangeQueryInput,
    TimePort,
    run_dashboard,
    run_overview,
    run_products,
    run_purge,
    run_slides,
    run_traffic,
    run_units,
)
from partsdash.rules.models import AnalyticsRules

router = APIRouter()


# --- Request/Response Models ---


class PeriodResponse(BaseModel):
    """Fields shared by every aggregation payload."""

    success: bool = True
    start_date: str
    end_date: str
    period_days: int
    period_label: str
    generated_at: str


class ChartPoint(BaseModel):
    date: str
    day: str
    views: int
    clicks: int
    unique_sessions: int


class DashboardResponse(PeriodResponse):
    daily_views: int
    daily_unit_clicks: int
    chart_data: list[ChartPoint]
    total_views_period: int
    total_clicks_period: int
    unique_sessions: int
    click_through_rate: float


class PurgeResponse(BaseModel):
    success: bool = True
    deleted: int
    cutoff: str


class PageItem(BaseModel):
    page_url: str
    views: int
    unique_sessions: int


class ShareItem(BaseModel):
    name: str
    count: int
    percentage: float


class TrafficResponse(PeriodResponse):
    chart_data: list[ChartPoint]
    total_views: int
    unique_sessions: int
    top_pages: list[PageItem]
    traffic_sources: list[ShareItem]
    device_types: list[ShareItem]


class ProductItem(BaseModel):
    id: str
    name: str
    slug: str | None
    category_id: str | None
    price: float | None
    image_url: str | None
    views: int
    clicks: int


class CategoryItem(BaseModel):
    category_id: str
    name: str
    total_views: int
    total_clicks: int
    products_with_views: int
    total_products: int


class ProductStats(BaseModel):
    total_products: int
    total_views: int
    total_products_with_views: int
    avg_views_per_product: float


class ProductsResponse(PeriodResponse):
    most_viewed_products: list[ProductItem]
    category_analytics: list[CategoryItem]
    product_stats: ProductStats


class MetricItem(BaseModel):
    value: float
    change: str
    increasing: bool


class ComparisonItem(BaseModel):
    previous_start_date: str
    previous_end_date: str
    deltas: dict[str, str]


class OverviewResponse(PeriodResponse):
    visitors: MetricItem
    page_views: MetricItem
    unit_clicks: MetricItem
    conversion_rate: MetricItem
    comparison: ComparisonItem


class UnitItem(BaseModel):
    id: str
    name: str
    views: int
    clicks: int
    whatsapp_clicks: int
    conversion_rate: float
    trend: str


class UnitsResponse(PeriodResponse):
    units: list[UnitItem]


class SlideItem(BaseModel):
    id: str
    title: str
    image_url: str | None
    mobile_image_url: str | None
    active: bool
    display_order: int
    views: int
    clicks: int
    click_rate: float
    device_breakdown: dict[str, int]


class SlidesResponse(PeriodResponse):
    slides: list[SlideItem]
    total_slides: int
    total_views: int
    total_clicks: int
    avg_click_rate: float


# --- Dependencies ---


def get_range_query(
    start_date: str | None = Query(None, alias="startDate", description="ISO start"),
    end_date: str | None = Query(None, alias="endDate", description="ISO end (exclusive)"),
    period: str | None = Query(None, description="last_7_days, last_30_days, last_90_days"),
    days: int | None = Query(None, description="Number of days, today included"),
    granularity: Literal["day", "hour"] = Query("day", description="Bucket size"),
    limit: int | None = Query(None, ge=1, le=100, description="Max ranked rows"),
) -> RangeQueryInput:
    return RangeQueryInput(
        start_date=start_date,
        end_date=end_date,
        period=period,
        days=days,
        granularity=granularity,
        limit=limit,
    )


# --- Helper Functions ---


def _period_fields(rng: DateRange, generated_at: datetime) -> dict[str, object]:
    return {
        "start_date": rng.start.isoformat(),
        "end_date": rng.end.isoformat(),
        "period_days": rng.period_days,
        "period_label": rng.label,
        "generated_at": generated_at.isoformat(),
    }


def _chart(series: AggregateResult) -> list[ChartPoint]:
    return [
        ChartPoint(
            date=m.bucket.key,
            day=m.bucket.label,
            views=m.views,
            clicks=m.clicks,
            unique_sessions=m.unique_sessions,
        )
        for m in series.buckets
    ]


# --- Routes ---


@router.get("/dashboard/analytics", response_model=DashboardResponse)
def get_dashboard(
    query: RangeQueryInput = Depends(get_range_query),
    event_store: EventStorePort = Depends(get_event_store),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> DashboardResponse:
    """Today's counters and the per-bucket views/clicks chart."""
    out = run_dashboard(query, event_store=event_store, time_port=clock, rules=rules)

    return DashboardResponse(
        daily_views=out.daily_views,
        daily_unit_clicks=out.daily_unit_clicks,
        chart_data=_chart(out.series),
        total_views_period=out.series.total_views,
        total_clicks_period=out.series.total_clicks,
        unique_sessions=out.series.unique_sessions,
        click_through_rate=out.series.click_through_rate,
        **_period_fields(out.range, out.generated_at),
    )


@router.delete("/dashboard/analytics", response_model=PurgeResponse)
def purge_old_events(
    event_store: EventStorePort = Depends(get_event_store),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> PurgeResponse:
    """Delete events past the retention window."""
    out = run_purge(event_store=event_store, time_port=clock, rules=rules)
    return PurgeResponse(deleted=out.deleted, cutoff=out.cutoff.isoformat())


@router.get("/analytics/traffic", response_model=TrafficResponse)
def get_traffic(
    query: RangeQueryInput = Depends(get_range_query),
    event_store: EventStorePort = Depends(get_event_store),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> TrafficResponse:
    """Page views by bucket, top pages, traffic sources and devices."""
    out = run_traffic(query, event_store=event_store, time_port=clock, rules=rules)

    return TrafficResponse(
        chart_data=_chart(out.series),
        total_views=out.series.total_views,
        unique_sessions=out.series.unique_sessions,
        top_pages=[
            PageItem(page_url=p.page_url, views=p.views, unique_sessions=p.unique_sessions)
            for p in out.top_pages
        ],
        traffic_sources=[
            ShareItem(name=s.name, count=s.count, percentage=s.percentage) for s in out.sources
        ],
        device_types=[
            ShareItem(name=d.name, count=d.count, percentage=d.percentage) for d in out.devices
        ],
        **_period_fields(out.range, out.generated_at),
    )


@router.get("/analytics/products", response_model=ProductsResponse)
def get_products(
    query: RangeQueryInput = Depends(get_range_query),
    event_store: EventStorePort = Depends(get_event_store),
    catalog: CatalogPort = Depends(get_catalog),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> ProductsResponse:
    """Most viewed products and per-category totals."""
    out = run_products(
        query, event_store=event_store, catalog=catalog, time_port=clock, rules=rules
    )

    return ProductsResponse(
        most_viewed_products=[
            ProductItem(
                id=r.product.id,
                name=r.product.name,
                slug=r.product.slug,
                category_id=r.product.category_id,
                price=r.product.price,
                image_url=r.product.image_url,
                views=r.entry.views,
                clicks=r.entry.clicks,
            )
            for r in out.most_viewed
        ],
        category_analytics=[
            CategoryItem(
                category_id=c.category.id,
                name=c.category.name,
                total_views=c.metrics.views,
                total_clicks=c.metrics.clicks,
                products_with_views=c.metrics.entities,
                total_products=c.total_products,
            )
            for c in out.categories
        ],
        product_stats=ProductStats(
            total_products=out.total_products,
            total_views=out.total_views,
            total_products_with_views=out.products_with_views,
            avg_views_per_product=out.avg_views_per_product,
        ),
        **_period_fields(out.range, out.generated_at),
    )


@router.get("/analytics/overview", response_model=OverviewResponse)
def get_overview(
    query: RangeQueryInput = Depends(get_range_query),
    event_store: EventStorePort = Depends(get_event_store),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> OverviewResponse:
    """Headline metrics against the preceding window of equal length."""
    out = run_overview(query, event_store=event_store, time_port=clock, rules=rules)
    comparison = out.comparison

    def metric(m: object) -> MetricItem:
        return MetricItem.model_validate(m, from_attributes=True)

    return OverviewResponse(
        visitors=metric(out.visitors),
        page_views=metric(out.page_views),
        unit_clicks=metric(out.unit_clicks),
        conversion_rate=metric(out.conversion_rate),
        comparison=ComparisonItem(
            previous_start_date=comparison.previous_range.start.isoformat(),
            previous_end_date=comparison.previous_range.end.isoformat(),
            deltas=comparison.deltas,
        ),
        **_period_fields(comparison.current_range, out.generated_at),
    )


@router.get("/analytics/units", response_model=UnitsResponse)
def get_units(
    query: RangeQueryInput = Depends(get_range_query),
    event_store: EventStorePort = Depends(get_event_store),
    catalog: CatalogPort = Depends(get_catalog),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> UnitsResponse:
    """Per-unit views, clicks and WhatsApp contacts."""
    out = run_units(
        query, event_store=event_store, catalog=catalog, time_port=clock, rules=rules
    )

    return UnitsResponse(
        units=[
            UnitItem(
                id=s.unit.id,
                name=s.unit.name,
                views=s.views,
                clicks=s.clicks,
                whatsapp_clicks=s.whatsapp_clicks,
                conversion_rate=s.conversion_rate,
                trend=s.trend,
            )
            for s in out.units
        ],
        **_period_fields(out.range, out.generated_at),
    )


@router.get("/analytics/slides", response_model=SlidesResponse)
def get_slides(
    query: RangeQueryInput = Depends(get_range_query),
    event_store: EventStorePort = Depends(get_event_store),
    catalog: CatalogPort = Depends(get_catalog),
    clock: TimePort = Depends(get_clock),
    rules: AnalyticsRules = Depends(get_analytics_rules),
) -> SlidesResponse:
    """Per-slide views, clicks and device breakdown."""
    out = run_slides(
        query, event_store=event_store, catalog=catalog, time_port=clock, rules=rules
    )

    return SlidesResponse(
        slides=[
            SlideItem(
                id=s.slide.id,
                title=s.slide.title,
                image_url=s.slide.image_url,
                mobile_image_url=s.slide.mobile_image_url,
                active=s.slide.active,
                display_order=s.slide.display_order,
                views=s.views,
                clicks=s.clicks,
                click_rate=s.click_rate,
                device_breakdown=s.devices,
            )
            for s in out.slides
        ],
        total_slides=len(out.slides),
        total_views=out.total_views,
        total_clicks=out.total_clicks,
        avg_click_rate=out.avg_click_rate,
        **_period_fields(out.range, out.generated_at),
    )
