"""
Tests for the metric aggregator.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from partsdash.components.analytics import (
    aggregate,
    build_buckets,
    count_sessions,
    dashboard_classifier,
    traffic_classifier,
)

JAN_1 = datetime(2025, 1, 1, tzinfo=UTC)
JAN_2 = datetime(2025, 1, 2, tzinfo=UTC)
JAN_3 = datetime(2025, 1, 3, tzinfo=UTC)


def two_day_buckets():
    return build_buckets(JAN_1, JAN_3, "day")


class TestAggregate:
    """Folding classified events into day buckets."""

    def test_views_per_day(self, make_event) -> None:
        """3 views on Jan 1 and 2 on Jan 2 give [3, 2] and a total of 5."""
        events = [
            make_event(ts=JAN_1 + timedelta(hours=h), session_id=f"a{h}") for h in (1, 5, 9)
        ] + [make_event(ts=JAN_2 + timedelta(hours=h), session_id=f"b{h}") for h in (3, 20)]

        result = aggregate(events, two_day_buckets(), traffic_classifier)

        assert [m.bucket.label for m in result.buckets] == ["01/01", "02/01"]
        assert [m.views for m in result.buckets] == [3, 2]
        assert result.total_views == 5

    def test_each_event_counted_once(self, make_event) -> None:
        """An event exactly on a boundary goes to the later bucket only."""
        events = [
            make_event(ts=JAN_2),
            make_event(ts=JAN_2 - timedelta(microseconds=1)),
        ]

        result = aggregate(events, two_day_buckets(), traffic_classifier)

        assert [m.views for m in result.buckets] == [1, 1]
        assert sum(m.views for m in result.buckets) == len(events)

    def test_events_outside_range_ignored(self, make_event) -> None:
        events = [
            make_event(ts=JAN_1 - timedelta(seconds=1)),
            make_event(ts=JAN_3),
            make_event(ts=JAN_1 + timedelta(hours=12)),
        ]

        result = aggregate(events, two_day_buckets(), traffic_classifier)

        assert result.total_views == 1

    def test_empty_buckets_kept_with_zero_counts(self, make_event) -> None:
        events = [make_event(ts=JAN_1 + timedelta(hours=1))]

        result = aggregate(events, two_day_buckets(), traffic_classifier)

        assert len(result.buckets) == 2
        assert result.buckets[1].views == 0
        assert result.buckets[1].unique_sessions == 0

    def test_no_buckets_gives_empty_result(self, make_event) -> None:
        result = aggregate([make_event(ts=JAN_1)], (), traffic_classifier)

        assert result.buckets == ()
        assert result.total_views == 0
        assert result.click_through_rate == 0.0

    def test_range_uniques_are_not_summed_bucket_uniques(self, make_event) -> None:
        """One session active on both days is one unique over the range."""
        events = [
            make_event(ts=JAN_1 + timedelta(hours=1), session_id="same"),
            make_event(ts=JAN_1 + timedelta(hours=2), session_id="same"),
            make_event(ts=JAN_2 + timedelta(hours=1), session_id="same"),
            make_event(ts=JAN_2 + timedelta(hours=2), session_id="other"),
        ]

        result = aggregate(events, two_day_buckets(), traffic_classifier)

        assert [m.unique_sessions for m in result.buckets] == [1, 2]
        assert result.unique_sessions == 2

    def test_clicks_and_rate(self, make_event) -> None:
        ts = JAN_1 + timedelta(hours=3)
        events = [
            make_event("page_view", ts=ts, session_id="s1"),
            make_event("page_view", ts=ts, session_id="s2"),
            make_event("page_view", ts=ts, session_id="s3"),
            make_event("page_view", ts=ts, session_id="s4"),
            make_event("unit_click", ts=ts, entity_type="unit", entity_id="u1"),
            make_event(
                "unit_action_click",
                ts=ts,
                entity_type="unit",
                entity_id="u1",
                metadata={"action_type": "whatsapp"},
            ),
            make_event(
                "unit_action_click",
                ts=ts,
                entity_type="unit",
                entity_id="u1",
                metadata={"action_type": "email"},
            ),
            make_event("slide_view", ts=ts, entity_type="slide", entity_id="x"),
        ]

        result = aggregate(events, two_day_buckets(), dashboard_classifier())

        assert result.total_views == 4
        assert result.total_clicks == 2
        assert result.click_through_rate == 50.0

    def test_clicks_do_not_add_unique_sessions(self, make_event) -> None:
        events = [make_event("unit_click", ts=JAN_1, session_id="clicker")]

        result = aggregate(events, two_day_buckets(), dashboard_classifier())

        assert result.total_clicks == 1
        assert result.unique_sessions == 0

    def test_same_input_same_output(self, make_event) -> None:
        events = [
            make_event(ts=JAN_1 + timedelta(hours=h), session_id=f"s{h % 3}") for h in range(30)
        ]
        buckets = two_day_buckets()

        first = aggregate(events, buckets, traffic_classifier)
        second = aggregate(events, buckets, traffic_classifier)

        assert first == second

    def test_unordered_events(self, make_event) -> None:
        events = [
            make_event(ts=JAN_2 + timedelta(hours=1)),
            make_event(ts=JAN_1 + timedelta(hours=1)),
            make_event(ts=JAN_2 + timedelta(hours=2)),
        ]

        result = aggregate(events, two_day_buckets(), traffic_classifier)

        assert [m.views for m in result.buckets] == [1, 2]


class TestCountSessions:
    def test_distinct_sessions_over_any_event_type(self, make_event) -> None:
        events = [
            make_event("page_view", session_id="a"),
            make_event("unit_click", session_id="a"),
            make_event("slide_view", session_id="b"),
        ]
        assert count_sessions(events) == 2

    def test_empty(self) -> None:
        assert count_sessions([]) == 0
