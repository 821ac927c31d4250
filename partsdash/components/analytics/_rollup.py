"""
Category rollup.

Pure re-grouping of entity metrics using one bulk entity -> category
map. Entities without a resolvable category are dropped, so rates are
over categorized activity only.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .models import CategoryMetrics, RankedEntry

SortKey = Callable[[CategoryMetrics], Any]


def by_views_desc(metrics: CategoryMetrics) -> int:
    return -metrics.views


def rollup_by_category(
    per_entity: Iterable[RankedEntry],
    entity_to_category: Mapping[str, str | None],
    sort_key: SortKey | None = by_views_desc,
) -> list[CategoryMetrics]:
    """
    Sum entity views/clicks into their owning categories.

    Args:
        per_entity: Per-entity counts (e.g. from count_by_key).
        entity_to_category: Bulk lookup of entity id -> category id.
        sort_key: Ordering key; None keeps first-seen order. Sorting is stable.
    """
    views: dict[str, int] = {}
    clicks: dict[str, int] = {}
    entities: dict[str, int] = {}

    for entry in per_entity:
        category_id = entity_to_category.get(entry.key)
        if not category_id:
            continue
        views[category_id] = views.get(category_id, 0) + entry.views
        clicks[category_id] = clicks.get(category_id, 0) + entry.clicks
        entities[category_id] = entities.get(category_id, 0) + 1

    result = [
        CategoryMetrics(
            category_id=category_id,
            views=views[category_id],
            clicks=clicks[category_id],
            entities=entities[category_id],
        )
        for category_id in views
    ]

    if sort_key is not None:
        result.sort(key=sort_key)
    return result
