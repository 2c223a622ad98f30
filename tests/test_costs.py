"""Unit tests for interval costing and the cost report."""

from datetime import datetime, timezone

import pytest

from usage_costing.costs import calculate_interval_costs, total_cost, total_standing_charge
from usage_costing.models import RateEntry, Reading, StandingCharge, round2
from usage_costing.reporting import build_cost_report
from usage_costing.tariffs import RateSchedule


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def schedule():
    return RateSchedule.from_entries(
        [
            RateEntry(28.42, utc(2024, 1, 1), utc(2024, 1, 2)),
            RateEntry(20.0, utc(2024, 1, 2), utc(2024, 1, 3)),
        ]
    )


class TestCalculateIntervalCosts:
    """Test pricing each interval with the rate at its start."""

    def test_pence_are_converted_to_pounds(self, schedule):
        costed = calculate_interval_costs([Reading("2024-01-01T10:00:00Z", 10.0)], schedule)
        assert costed[0].applied_rate == 28.42
        assert costed[0].cost == pytest.approx(2.842)
        assert round2(costed[0].cost) == 2.84

    def test_rate_changes_at_boundary(self, schedule):
        costed = calculate_interval_costs(
            [
                Reading("2024-01-01T23:30:00Z", 1.0),
                Reading("2024-01-02T00:00:00Z", 1.0),
            ],
            schedule,
        )
        assert [item.applied_rate for item in costed] == [28.42, 20.0]

    def test_standing_charge_is_spread_over_half_hours(self, schedule):
        costed = calculate_interval_costs(
            [Reading("2024-01-01T00:00:00Z", 1.0)], schedule, StandingCharge(48.0)
        )
        assert costed[0].standing_charge_share == pytest.approx(0.01)

    def test_custom_intervals_per_day(self, schedule):
        costed = calculate_interval_costs(
            [Reading("2024-01-01T00:00:00Z", 1.0)],
            schedule,
            StandingCharge(48.0),
            intervals_per_day=24,
        )
        assert costed[0].standing_charge_share == pytest.approx(0.02)

    def test_unmatched_interval_keeps_standing_charge(self, schedule):
        costed = calculate_interval_costs(
            [Reading("2024-02-01T00:00:00Z", 3.0)], schedule, StandingCharge(48.0)
        )
        assert costed[0].applied_rate == 0
        assert costed[0].cost == 0
        assert costed[0].standing_charge_share == pytest.approx(0.01)

    def test_empty_schedule_zeroes_everything(self):
        costed = calculate_interval_costs(
            [Reading("2024-01-01T00:00:00Z", 3.0)], RateSchedule(), StandingCharge(48.0)
        )
        assert costed[0].consumption_kwh == 3.0
        assert costed[0].cost == 0
        assert costed[0].standing_charge_share == 0

    def test_skips_readings_without_timestamp(self, schedule):
        costed = calculate_interval_costs(
            [Reading("", 1.0), Reading("2024-01-01T00:00:00Z", 1.0)], schedule
        )
        assert len(costed) == 1

    def test_naive_labels_use_injected_timezone(self, schedule):
        # midnight in Auckland on Jan 2 is still Jan 1 in UTC
        costed = calculate_interval_costs(
            [Reading("2024-01-02T00:00", 1.0)], schedule, timezone="Pacific/Auckland"
        )
        assert costed[0].applied_rate == 28.42

    def test_rejects_non_positive_intervals(self, schedule):
        with pytest.raises(ValueError):
            calculate_interval_costs([], schedule, intervals_per_day=0)

    def test_totals(self, schedule):
        costed = calculate_interval_costs(
            [Reading("2024-01-01T00:00:00Z", 10.0), Reading("2024-01-02T00:00:00Z", 10.0)],
            schedule,
            StandingCharge(48.0),
        )
        assert total_cost(costed) == pytest.approx(4.842)
        assert total_standing_charge(costed) == pytest.approx(0.02)


class TestBuildCostReport:
    """Test report totals and the degraded no-rate case."""

    def test_totals_and_periods(self, schedule):
        costed = calculate_interval_costs(
            [
                Reading("2024-01-01T10:00:00Z", 10.0),
                Reading("2024-01-02T10:00:00Z", 5.0),
            ],
            schedule,
            StandingCharge(48.0),
        )
        report = build_cost_report(costed)
        assert report.total_consumption_kwh == 15.0
        assert report.unit_cost == 3.84
        assert report.standing_charge == 0.02
        assert report.billed_total == 3.86
        assert report.has_rates
        assert report.unpriced_intervals == 0
        daily = report.as_dict()["daily"]
        assert [item["period"] for item in daily] == ["2024-01-01", "2024-01-02"]
        assert report.as_dict()["monthly"][0]["period"] == "2024-01"

    def test_without_rates_still_reports_consumption(self):
        costed = calculate_interval_costs(
            [Reading("2024-01-01T10:00:00Z", 10.0)], RateSchedule(), None
        )
        report = build_cost_report(costed)
        assert report.total_consumption_kwh == 10.0
        assert report.billed_total == 0
        assert not report.has_rates

    def test_empty(self):
        report = build_cost_report([])
        assert report.interval_count == 0
        assert not report.has_rates
