from __future__ import annotations

from datetime import datetime, time
from typing import Iterable, List, Mapping, Tuple
from zoneinfo import ZoneInfo

from .models import (
    DEFAULT_TIMEZONE,
    SeriesPoint,
    YearCostMap,
    YearCostSettings,
    resolve_timezone,
)
from .series import local_instant

NIGHT_START = time(0, 30)
NIGHT_END = time(5, 30)

MIN_YEAR = 1900
MAX_YEAR = 2100


def is_night_time(
    instant: datetime,
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
    night_start: time = NIGHT_START,
    night_end: time = NIGHT_END,
) -> bool:
    local_dt = instant.astimezone(resolve_timezone(timezone))
    return night_start <= local_dt.time() < night_end


def split_by_rate(
    series: Iterable[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> Tuple[List[SeriesPoint], List[SeriesPoint]]:
    """Split half-hourly points into (night, standard) lists."""

    tzinfo = resolve_timezone(timezone)
    night: List[SeriesPoint] = []
    standard: List[SeriesPoint] = []
    for point in series:
        instant = local_instant(point.date, tzinfo)
        if instant is None:
            continue
        if is_night_time(instant, timezone=tzinfo):
            night.append(point)
        else:
            standard.append(point)
    return night, standard


def night_share(
    series: Iterable[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> float:
    night, standard = split_by_rate(series, timezone=timezone)
    night_total = sum(point.value for point in night)
    overall = night_total + sum(point.value for point in standard)
    if overall == 0:
        return 0.0
    return night_total / overall


def estimate_year_cost(
    series: Iterable[SeriesPoint],
    year: int,
    settings: YearCostSettings,
    *,
    month: int | None = None,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> float:
    """Estimate a year's cost in pounds from user-entered per-kWh prices.

    With ``month`` set only that month of the year is priced. Night
    consumption is priced separately only when the night rate is enabled
    and both prices are set.
    """

    validate_year(year)
    if month is not None and not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    tzinfo = resolve_timezone(timezone)
    year_points = [
        point
        for point in series
        if _in_period(point, tzinfo, year, month)
    ]
    total_kwh = sum(point.value for point in year_points)
    if (
        not settings.night_rate_enabled
        or settings.night_rate == 0
        or settings.unit_cost == 0
    ):
        return total_kwh * settings.unit_cost

    night, standard = split_by_rate(year_points, timezone=tzinfo)
    night_kwh = sum(point.value for point in night)
    standard_kwh = sum(point.value for point in standard)
    return standard_kwh * settings.unit_cost + night_kwh * settings.night_rate


def validate_year(year: int) -> int:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError(f"{year} is not a plausible calendar year")
    return year


def build_year_costs(settings: Mapping[int, YearCostSettings]) -> YearCostMap:
    return {validate_year(int(year)): value for year, value in settings.items()}


def _in_period(
    point: SeriesPoint, tzinfo: ZoneInfo, year: int, month: int | None
) -> bool:
    instant = local_instant(point.date, tzinfo)
    if instant is None or instant.year != year:
        return False
    return month is None or instant.month == month
