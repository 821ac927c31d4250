"""
Top-N ranker.

Groups classified events by key and orders them by views desc, clicks
desc, key asc so that equal counts always come back in the same order.
Display data (names, images, prices) is joined by the caller.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from ._classify import Classifier
from .models import EventRecord, Interaction, RankedEntry

KeyFn = Callable[[EventRecord], str | None]


def entity_key(event: EventRecord) -> str | None:
    return event.entity_id


def page_key(event: EventRecord) -> str | None:
    return event.page_url or "/"


def count_by_key(
    events: Iterable[EventRecord],
    key_fn: KeyFn,
    classifier: Classifier,
) -> dict[str, RankedEntry]:
    """View/click counts per key for every key with a qualifying event."""
    views: dict[str, int] = {}
    clicks: dict[str, int] = {}

    for event in events:
        kind = classifier(event)
        if kind is None:
            continue
        key = key_fn(event)
        if key is None:
            continue

        views.setdefault(key, 0)
        clicks.setdefault(key, 0)
        if kind == Interaction.VIEW:
            views[key] += 1
        else:
            clicks[key] += 1

    return {key: RankedEntry(key=key, views=views[key], clicks=clicks[key]) for key in views}


def rank_entries(entries: Iterable[RankedEntry]) -> list[RankedEntry]:
    """Deterministic ranking order."""
    return sorted(entries, key=lambda e: (-e.views, -e.clicks, e.key))


def top_n(
    events: Iterable[EventRecord],
    n: int,
    key_fn: KeyFn,
    classifier: Classifier,
) -> list[RankedEntry]:
    """
    Highest-ranked keys, at most n of them.

    Keys with no qualifying events never appear; the result is not padded.
    """
    if n <= 0:
        return []
    return rank_entries(count_by_key(events, key_fn, classifier).values())[:n]
