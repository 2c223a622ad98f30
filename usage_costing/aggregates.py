from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, Mapping, Sequence, Tuple
from zoneinfo import ZoneInfo

from .models import (
    DEFAULT_TIMEZONE,
    CostedInterval,
    SeriesPoint,
    SeriesStats,
    resolve_timezone,
    round2,
)
from .series import local_instant

PeriodKey = Tuple[int, int, int] | Tuple[int, int] | Tuple[int]


def year_totals(
    series: Iterable[SeriesPoint],
    years: Sequence[int],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> Dict[int, float]:
    """Total consumption per requested year."""

    tzinfo = resolve_timezone(timezone)
    totals: Dict[int, float] = {year: 0.0 for year in years}
    for point in series:
        instant = local_instant(point.date, tzinfo)
        if instant is not None and instant.year in totals:
            totals[instant.year] += point.value
    return {year: round2(total) for year, total in totals.items()}


def month_totals(
    series: Iterable[SeriesPoint],
    month: int,
    years: Sequence[int],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> Dict[int, float]:
    """Total consumption of one calendar month per requested year."""

    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    tzinfo = resolve_timezone(timezone)
    totals: Dict[int, float] = {year: 0.0 for year in years}
    for point in series:
        instant = local_instant(point.date, tzinfo)
        if instant is None or instant.month != month:
            continue
        if instant.year in totals:
            totals[instant.year] += point.value
    return {year: round2(total) for year, total in totals.items()}


def percentage_changes(
    totals: Mapping[int, float],
    years: Sequence[int],
) -> Dict[int, float | None]:
    """Change against the previous requested year, in percent.

    ``None`` marks an unknown change: the earliest year has no baseline and a
    zero previous total cannot be divided by.
    """

    changes: Dict[int, float | None] = {}
    ordered = sorted(set(years))
    for index, year in enumerate(ordered):
        if index == 0:
            changes[year] = None
            continue
        previous = totals.get(ordered[index - 1], 0.0)
        if previous == 0:
            changes[year] = None
            continue
        current = totals.get(year, 0.0)
        changes[year] = round(((current - previous) / previous) * 100, 1)
    return changes


def summarize_series(series: Sequence[SeriesPoint]) -> SeriesStats | None:
    if not series:
        return None
    total = sum(point.value for point in series)
    return SeriesStats(
        total_days=len(series),
        total=round2(total),
        daily_average=round2(total / len(series)),
    )


def aggregate_costs(
    costs: Iterable[CostedInterval],
    period: str = "day",
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> Dict[PeriodKey, float]:
    """Aggregate unit and standing costs by day, month, or year."""

    tzinfo = resolve_timezone(timezone)
    totals: Dict[PeriodKey, float] = defaultdict(float)
    for item in costs:
        instant = local_instant(item.timestamp, tzinfo)
        if instant is None:
            continue
        key = _period_key(instant, period)
        totals[key] += item.cost + item.standing_charge_share
    return dict(totals)


def _period_key(timestamp: datetime, period: str) -> PeriodKey:
    if period == "day":
        return (timestamp.year, timestamp.month, timestamp.day)
    if period == "month":
        return (timestamp.year, timestamp.month)
    if period == "year":
        return (timestamp.year,)
    raise ValueError("period must be 'day', 'month', or 'year'")
