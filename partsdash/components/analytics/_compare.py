"""
Period comparator.

The previous window is the interval of identical duration ending where
the current one starts, not a calendar-aligned period. Both windows are
aggregated independently from the same snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable

from ._aggregate import aggregate
from ._buckets import build_buckets, ensure_utc
from ._classify import Classifier
from .models import AggregateResult, Comparison, DateRange, EventRecord, Granularity


def delta_pct(current: float, previous: float) -> str:
    """
    Percentage change as a display string.

    0 -> 0 is "0%", 0 -> anything positive is "+100%"; otherwise one
    decimal with a "+" sign when the rounded change is non-negative.
    """
    if previous == 0:
        return "+100%" if current > 0 else "0%"

    change = round((current - previous) / previous * 100, 1)
    if change >= 0:
        return f"+{abs(change):.1f}%"
    return f"{change:.1f}%"


def previous_range(current: DateRange) -> DateRange:
    """Equal-length window immediately before current."""
    duration = current.end - current.start
    return DateRange(
        start=current.start - duration,
        end=current.start,
        period_days=current.period_days,
        label=f"previous {current.label}",
    )


def _within(events: Iterable[EventRecord], window: DateRange) -> list[EventRecord]:
    return [e for e in events if window.start <= ensure_utc(e.timestamp) < window.end]


def aggregate_range(
    events: Iterable[EventRecord],
    window: DateRange,
    classifier: Classifier,
    granularity: Granularity = Granularity.DAY,
    tz_name: str = "UTC",
) -> AggregateResult:
    buckets = build_buckets(window.start, window.end, granularity, tz_name)
    return aggregate(events, buckets, classifier)


def compare_results(
    current_range: DateRange,
    previous: DateRange,
    current_result: AggregateResult,
    previous_result: AggregateResult,
) -> Comparison:
    """Attach deltas to two already computed aggregates."""
    deltas = {
        "views": delta_pct(current_result.total_views, previous_result.total_views),
        "clicks": delta_pct(current_result.total_clicks, previous_result.total_clicks),
        "unique_sessions": delta_pct(
            current_result.unique_sessions, previous_result.unique_sessions
        ),
        "click_through_rate": delta_pct(
            current_result.click_through_rate, previous_result.click_through_rate
        ),
    }
    return Comparison(
        current_range=current_range,
        previous_range=previous,
        current=current_result,
        previous=previous_result,
        deltas=deltas,
    )


def compare(
    events: Iterable[EventRecord],
    current_range: DateRange,
    classifier: Classifier,
    granularity: Granularity = Granularity.DAY,
    tz_name: str = "UTC",
) -> Comparison:
    """
    Aggregate the current and preceding windows and compute deltas.

    events may span both windows; each aggregation only sees its own.
    """
    snapshot = list(events)
    prev = previous_range(current_range)

    current_result = aggregate_range(
        _within(snapshot, current_range), current_range, classifier, granularity, tz_name
    )
    previous_result = aggregate_range(
        _within(snapshot, prev), prev, classifier, granularity, tz_name
    )
    return compare_results(current_range, prev, current_result, previous_result)
