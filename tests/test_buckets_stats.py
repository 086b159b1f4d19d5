"""Tests for per-day bucketing, upcoming lists and the stat tiles."""

from datetime import date

from app.domain.calendar.buckets import bucketize, upcoming
from app.domain.calendar.grid import build_grid
from app.domain.calendar.stats import compute_stats

TODAY = date(2024, 3, 13)


class TestBucketize:
    """Placing appointments into grid cells."""

    def test_every_cell_gets_a_bucket(self, make_appointment):
        cells = build_grid(TODAY, "month")
        buckets = bucketize([], cells)

        assert set(buckets) == {c.date for c in cells}
        assert all(bucket == [] for bucket in buckets.values())

    def test_sorted_by_start_time(self, make_appointment):
        cells = build_grid(TODAY, "month")
        appointments = [
            make_appointment("late", TODAY, "15:00"),
            make_appointment("early", TODAY, "08:30"),
            make_appointment("noon", TODAY, "12:00"),
        ]

        buckets = bucketize(appointments, cells)

        assert [a.id for a in buckets[TODAY]] == ["early", "noon", "late"]

    def test_equal_start_times_keep_input_order(self, make_appointment):
        cells = build_grid(TODAY, "week")
        appointments = [
            make_appointment("first", TODAY, "10:00"),
            make_appointment("second", TODAY, "10:00"),
            make_appointment("third", TODAY, "09:00"),
        ]

        buckets = bucketize(appointments, cells)

        assert [a.id for a in buckets[TODAY]] == ["third", "first", "second"]

    def test_each_appointment_in_at_most_one_bucket(self, make_appointment):
        cells = build_grid(TODAY, "week")
        appointments = [
            make_appointment("in-week", date(2024, 3, 11)),
            make_appointment("next-week", date(2024, 3, 20)),
        ]

        buckets = bucketize(appointments, cells)
        placed = [a.id for bucket in buckets.values() for a in bucket]

        assert placed == ["in-week"]

    def test_cancelled_appointments_are_not_filtered(self, make_appointment):
        cells = build_grid(TODAY, "week")
        buckets = bucketize([make_appointment("x", TODAY, status="cancelled")], cells)

        assert [a.id for a in buckets[TODAY]] == ["x"]


class TestUpcoming:
    def test_excludes_past_and_cancelled(self, make_appointment):
        appointments = [
            make_appointment("past", date(2024, 3, 12)),
            make_appointment("cancelled", date(2024, 3, 14), status="cancelled"),
            make_appointment("tomorrow", date(2024, 3, 14), "08:00"),
            make_appointment("today", TODAY, "17:00"),
        ]

        result = upcoming(appointments, TODAY)

        assert [a.id for a in result] == ["today", "tomorrow"]

    def test_limit(self, make_appointment):
        appointments = [make_appointment(f"a{i}", TODAY, f"{8 + i:02d}:00") for i in range(5)]

        assert len(upcoming(appointments, TODAY, limit=2)) == 2


class TestComputeStats:
    """Stat tile counts."""

    def test_counts_by_range(self, make_appointment):
        appointments = [
            make_appointment("today", TODAY),
            make_appointment("in-six-days", date(2024, 3, 19)),
            make_appointment("in-seven-days", date(2024, 3, 20)),
            make_appointment("earlier-this-month", date(2024, 3, 2)),
            make_appointment("next-month", date(2024, 4, 2)),
        ]

        stats = compute_stats(appointments, TODAY)

        assert stats.today == 1
        # Noon seven days out is past the today+7 midnight bound
        assert stats.week == 2
        assert stats.month == 4
        assert stats.testing == 0

    def test_cancelled_excluded_everywhere(self, make_appointment):
        appointments = [
            make_appointment("x", TODAY, status="cancelled", service_type="testing"),
        ]

        stats = compute_stats(appointments, TODAY)

        assert (stats.today, stats.week, stats.month, stats.testing) == (0, 0, 0, 0)

    def test_testing_counts_only_from_today(self, make_appointment):
        appointments = [
            make_appointment("past", date(2024, 3, 1), service_type="testing"),
            make_appointment("today", TODAY, service_type="testing"),
            make_appointment("future", date(2024, 6, 1), service_type="testing"),
            make_appointment("web", date(2024, 6, 1), service_type="web"),
        ]

        assert compute_stats(appointments, TODAY).testing == 2
