"""Meter-reading aggregation, year comparison, and historical tariff costing."""

from .aggregates import (
    aggregate_costs,
    month_totals,
    percentage_changes,
    summarize_series,
    year_totals,
)
from .comparison import compare_months, compare_years
from .costs import calculate_interval_costs, total_cost, total_standing_charge
from .models import (
    Agreement,
    ComparisonPoint,
    CostedInterval,
    RateEntry,
    Reading,
    SeriesPoint,
    SeriesStats,
    StandingCharge,
    TariffSummary,
    YearCostSettings,
)
from .reporting import CostReport, build_cost_report
from .series import available_windows, available_years, filter_by_window, normalize_readings
from .tariffs import HourlySpreadClassifier, RateSchedule, resolve_rate_schedule, summarize_tariff

__all__ = [
    "aggregate_costs",
    "Agreement",
    "available_windows",
    "available_years",
    "build_cost_report",
    "calculate_interval_costs",
    "compare_months",
    "compare_years",
    "ComparisonPoint",
    "CostedInterval",
    "CostReport",
    "filter_by_window",
    "HourlySpreadClassifier",
    "month_totals",
    "normalize_readings",
    "percentage_changes",
    "RateEntry",
    "RateSchedule",
    "Reading",
    "resolve_rate_schedule",
    "SeriesPoint",
    "SeriesStats",
    "StandingCharge",
    "summarize_series",
    "summarize_tariff",
    "TariffSummary",
    "total_cost",
    "total_standing_charge",
    "year_totals",
    "YearCostSettings",
]
