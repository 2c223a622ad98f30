"""Unit tests for year and month alignment."""

import pytest

from usage_costing.comparison import compare_months, compare_years
from usage_costing.models import SeriesPoint


@pytest.fixture
def series():
    return [
        SeriesPoint("2022-03-01", 9.0),
        SeriesPoint("2023-01-15", 1.0),
        SeriesPoint("2023-01-15T12:00", 0.5),
        SeriesPoint("2024-01-03", 1.0),
        SeriesPoint("2024-01-15", 2.0),
        SeriesPoint("2024-02-29", 3.0),
    ]


class TestCompareYears:
    """Test whole-year alignment on a month-day axis."""

    def test_axis_is_union_of_month_days(self, series):
        points = compare_years(series, [2023, 2024])
        assert [point.label for point in points] == ["01-03", "01-15", "02-29"]

    def test_every_point_has_every_year(self, series):
        points = compare_years(series, [2023, 2024])
        for point in points:
            assert set(point.values) == {2023, 2024}

    def test_sums_per_key_and_zero_fills(self, series):
        points = {point.label: point.values for point in compare_years(series, [2023, 2024])}
        assert points["01-15"] == {2023: 1.5, 2024: 2.0}
        assert points["02-29"] == {2023: 0.0, 2024: 3.0}

    def test_year_without_data_is_all_zero(self, series):
        points = compare_years(series, [2023, 2025])
        assert [point.values[2025] for point in points] == [0.0]
        assert points[0].label == "01-15"

    def test_no_years_requested(self, series):
        assert compare_years(series, []) == []

    def test_as_dict_uses_string_year_keys(self, series):
        point = compare_years(series, [2023, 2024])[1]
        assert point.as_dict() == {"date": "01-15", "2023": 1.5, "2024": 2.0}


class TestCompareMonths:
    """Test one-month alignment on a day-of-month axis."""

    def test_days_sorted_numerically(self, series):
        points = compare_months(series, 1, [2023, 2024])
        assert [point.label for point in points] == ["3", "15"]

    def test_values_per_year(self, series):
        points = compare_months(series, 1, [2023, 2024])
        assert points[0].values == {2023: 0.0, 2024: 1.0}
        assert points[1].values == {2023: 1.5, 2024: 2.0}

    def test_other_months_ignored(self, series):
        points = compare_months(series, 2, [2023, 2024])
        assert [point.label for point in points] == ["29"]

    def test_month_out_of_range(self, series):
        with pytest.raises(ValueError):
            compare_months(series, 13, [2023])

    def test_no_years_requested(self, series):
        assert compare_months(series, 1, []) == []
