"""
Metric aggregator - folds classified events into per-bucket counts.

Key behaviors:
- Each event lands in the one bucket whose [start, end) holds its timestamp
- Views also record the session id in the bucket's unique-session set
- Events outside every bucket are ignored
- Range totals count distinct sessions over the whole range, not the
  sum of per-bucket uniques
- Exact integer counts, no sampling; same input always gives same output
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ._buckets import ensure_utc
from ._classify import Classifier
from .models import (
    AggregateResult,
    Bucket,
    BucketMetrics,
    EventRecord,
    Interaction,
)


@dataclass
class _Tally:
    views: int = 0
    clicks: int = 0
    sessions: set[str] = field(default_factory=set)


def find_bucket_index(
    buckets: Sequence[Bucket],
    starts: Sequence[datetime],
    event: EventRecord,
) -> int | None:
    """Binary search for the bucket holding event.timestamp."""
    ts = ensure_utc(event.timestamp)
    idx = bisect_right(starts, ts) - 1
    if idx < 0:
        return None
    if not buckets[idx].contains(ts):
        return None
    return idx


def aggregate(
    events: Iterable[EventRecord],
    buckets: Sequence[Bucket],
    classifier: Classifier,
) -> AggregateResult:
    """
    Count views, clicks and unique sessions per bucket.

    Args:
        events: Event snapshot; not mutated.
        buckets: Buckets sorted ascending by start (as built by build_buckets).
        classifier: Maps each event to VIEW, CLICK or None.

    Returns:
        AggregateResult with one BucketMetrics per bucket, in bucket order.
    """
    tallies = [_Tally() for _ in buckets]
    starts = [b.start for b in buckets]
    all_sessions: set[str] = set()

    for event in events:
        kind = classifier(event)
        if kind is None:
            continue

        idx = find_bucket_index(buckets, starts, event)
        if idx is None:
            continue

        tally = tallies[idx]
        if kind == Interaction.VIEW:
            tally.views += 1
            tally.sessions.add(event.session_id)
            all_sessions.add(event.session_id)
        elif kind == Interaction.CLICK:
            tally.clicks += 1

    metrics = tuple(
        BucketMetrics(
            bucket=bucket,
            views=tally.views,
            clicks=tally.clicks,
            unique_sessions=len(tally.sessions),
        )
        for bucket, tally in zip(buckets, tallies, strict=True)
    )

    return AggregateResult(
        buckets=metrics,
        total_views=sum(m.views for m in metrics),
        total_clicks=sum(m.clicks for m in metrics),
        unique_sessions=len(all_sessions),
    )


def count_sessions(events: Iterable[EventRecord]) -> int:
    """Distinct session ids across any events (visitor proxy)."""
    return len({e.session_id for e in events})
