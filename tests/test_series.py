"""Unit tests for series normalization and time-window filtering."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from usage_costing.models import Reading, SeriesPoint
from usage_costing.series import (
    aggregate_daily,
    available_windows,
    available_years,
    data_date_range,
    data_span_days,
    filter_by_window,
    normalize_readings,
)


def _points(*pairs):
    return [SeriesPoint(label, value) for label, value in pairs]


# ---------------------------------------------------------------------------
# normalize_readings
# ---------------------------------------------------------------------------

class TestNormalizeReadings:
    """Test collapsing raw readings into a sorted series."""

    def test_sums_identical_labels_and_sorts(self, half_hourly_readings):
        series = normalize_readings(half_hourly_readings)
        assert series == _points(
            ("2024-01-01T00:00", 1.0),
            ("2024-01-01T00:30", 1.0),
            ("2024-01-02T00:00", 2.0),
        )

    def test_same_day_labels_stay_distinct(self):
        series = normalize_readings(
            [Reading("2024-03-01T10:00", 0.4), Reading("2024-03-01T10:30", 0.6)]
        )
        assert len(series) == 2

    def test_conserves_total(self, half_hourly_readings):
        series = normalize_readings(half_hourly_readings)
        total_in = sum(reading.consumption_kwh for reading in half_hourly_readings)
        assert sum(point.value for point in series) == pytest.approx(total_in, abs=0.01)

    def test_rounds_to_two_decimals(self):
        series = normalize_readings(
            [Reading("2024-01-01T00:00", 0.333), Reading("2024-01-01T00:00", 0.333)]
        )
        assert series[0].value == 0.67

    def test_drops_rows_without_usable_timestamp(self):
        series = normalize_readings(
            [
                Reading("", 1.0),
                Reading("   ", 1.0),
                Reading("not a date", 2.0),
                Reading("2024-01-01T00:00:00Z", 1.5),
            ]
        )
        assert series == _points(("2024-01-01T00:00:00Z", 1.5))

    def test_labels_with_same_instant_keep_insertion_order(self):
        series = normalize_readings(
            [
                Reading("2024-01-01T00:00:00+00:00", 1.0),
                Reading("2024-01-01T00:00:00Z", 2.0),
            ]
        )
        assert [point.date for point in series] == [
            "2024-01-01T00:00:00+00:00",
            "2024-01-01T00:00:00Z",
        ]

    def test_sorts_by_instant_not_label_text(self):
        series = normalize_readings(
            [
                Reading("2024-01-01T01:00:00+01:00", 1.0),  # 00:00 UTC
                Reading("2024-01-01T00:30:00+00:00", 1.0),
            ]
        )
        assert series[0].date == "2024-01-01T01:00:00+01:00"

    def test_empty_input(self):
        assert normalize_readings([]) == []


# ---------------------------------------------------------------------------
# filter_by_window
# ---------------------------------------------------------------------------

class TestFilterByWindow:
    """Test window selection and daily re-aggregation."""

    def test_all_aggregates_per_day(self):
        series = normalize_readings(
            [
                Reading("2024-01-01T00:00", 1.0),
                Reading("2024-01-01T00:30", 1.0),
                Reading("2024-01-02T00:00", 2.0),
            ]
        )
        assert filter_by_window(series, "all") == _points(
            ("2024-01-01", 2.0),
            ("2024-01-02", 2.0),
        )

    def test_all_is_idempotent_on_daily_series(self):
        daily = _points(("2024-01-01", 2.0), ("2024-01-02", 3.15), ("2024-01-05", 0.1))
        assert filter_by_window(daily, "all") == daily

    def test_daily_returns_raw_entries_for_target_date(self):
        series = _points(
            ("2024-01-01T00:00", 1.0),
            ("2024-01-01T00:30", 0.5),
            ("2024-01-02T00:00", 2.0),
        )
        result = filter_by_window(series, "daily", target_date="2024-01-01")
        assert result == series[:2]

    def test_daily_accepts_date_objects(self):
        series = _points(("2024-01-01T00:00", 1.0), ("2024-01-02T00:00", 2.0))
        result = filter_by_window(series, "daily", target_date=date(2024, 1, 2))
        assert result == series[1:]

    def test_daily_uses_local_calendar_date(self):
        series = _points(("2024-06-30T23:30:00+00:00", 1.0))
        london = filter_by_window(series, "daily", target_date="2024-07-01")
        utc = filter_by_window(
            series, "daily", target_date="2024-07-01", timezone="UTC"
        )
        assert london == series
        assert utc == []

    def test_daily_without_target_aggregates_like_all(self):
        series = _points(("2024-01-01T00:00", 1.0), ("2024-01-01T00:30", 1.0))
        assert filter_by_window(series, "daily") == _points(("2024-01-01", 2.0))

    def test_seven_day_window_cuts_and_aggregates(self):
        series = _points(
            ("2024-01-01T00:00", 1.0),
            ("2024-01-03T11:30", 1.0),
            ("2024-01-03T12:00", 2.0),
            ("2024-01-05T00:00", 3.0),
            ("2024-01-05T00:30", 1.0),
        )
        now = datetime(2024, 1, 10, 12, 0, tzinfo=ZoneInfo("Europe/London"))
        result = filter_by_window(series, "7d", now=now)
        assert result == _points(("2024-01-03", 2.0), ("2024-01-05", 4.0))

    def test_missing_days_are_not_zero_filled(self):
        series = _points(("2024-01-01T00:00", 1.0), ("2024-01-04T00:00", 1.0))
        now = datetime(2024, 1, 5, tzinfo=ZoneInfo("Europe/London"))
        result = filter_by_window(series, "30d", now=now)
        assert [point.date for point in result] == ["2024-01-01", "2024-01-04"]

    def test_unknown_window_raises(self):
        with pytest.raises(ValueError):
            filter_by_window(_points(("2024-01-01", 1.0)), "fortnight")

    def test_empty_series(self):
        assert filter_by_window([], "all") == []


def test_aggregate_daily_rounds_only_totals():
    series = _points(
        ("2024-01-01T00:00", 0.004),
        ("2024-01-01T00:30", 0.004),
        ("2024-01-01T01:00", 0.004),
    )
    assert aggregate_daily(series) == _points(("2024-01-01", 0.01))


# ---------------------------------------------------------------------------
# Window availability and date helpers
# ---------------------------------------------------------------------------

class TestAvailability:
    """Test which windows and years a series can offer."""

    def test_span_in_days(self):
        series = _points(("2024-01-01", 1.0), ("2024-01-10", 1.0))
        assert data_span_days(series) == 9

    def test_short_series_offers_daily_and_week(self):
        series = _points(("2024-01-01", 1.0), ("2024-01-10", 1.0))
        assert available_windows(series) == ["daily", "7d"]

    def test_year_and_a_day_offers_everything(self):
        series = _points(("2023-01-01", 1.0), ("2024-01-02", 1.0))
        assert available_windows(series) == ["daily", "7d", "30d", "90d", "year", "all"]

    def test_exact_year_does_not_offer_all(self):
        series = _points(("2023-01-01", 1.0), ("2024-01-01", 1.0))
        assert "all" not in available_windows(series)
        assert "year" in available_windows(series)

    def test_single_point_offers_nothing(self):
        assert available_windows(_points(("2024-01-01", 1.0))) == []

    def test_available_years(self):
        series = _points(("2024-02-01", 1.0), ("2023-05-01", 1.0), ("2024-03-01", 1.0))
        assert available_years(series) == [2023, 2024]

    def test_date_range(self):
        series = _points(("2024-01-01T00:00", 1.0), ("2024-02-03T23:30", 1.0))
        assert data_date_range(series) == ("2024-01-01", "2024-02-03")

    def test_date_range_empty(self):
        assert data_date_range([]) is None
