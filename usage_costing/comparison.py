from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence
from zoneinfo import ZoneInfo

from .models import DEFAULT_TIMEZONE, ComparisonPoint, SeriesPoint, resolve_timezone, round2
from .series import local_instant


def compare_years(
    series: Iterable[SeriesPoint],
    years: Sequence[int],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[ComparisonPoint]:
    """Align whole years on a shared ``MM-DD`` axis."""

    if not years:
        return []
    tzinfo = resolve_timezone(timezone)
    buckets: Dict[int, Dict[str, float]] = {year: defaultdict(float) for year in years}
    for point in series:
        instant = local_instant(point.date, tzinfo)
        if instant is None or instant.year not in buckets:
            continue
        buckets[instant.year][f"{instant.month:02d}-{instant.day:02d}"] += point.value

    # zero-padded MM-DD keys sort chronologically as strings
    labels = sorted({label for bucket in buckets.values() for label in bucket})
    return [_point(label, label, years, buckets) for label in labels]


def compare_months(
    series: Iterable[SeriesPoint],
    month: int,
    years: Sequence[int],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[ComparisonPoint]:
    """Align one calendar month across years on a day-of-month axis."""

    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    if not years:
        return []
    tzinfo = resolve_timezone(timezone)
    buckets: Dict[int, Dict[int, float]] = {year: defaultdict(float) for year in years}
    for point in series:
        instant = local_instant(point.date, tzinfo)
        if instant is None or instant.year not in buckets or instant.month != month:
            continue
        buckets[instant.year][instant.day] += point.value

    days = sorted({day for bucket in buckets.values() for day in bucket})
    return [_point(str(day), day, years, buckets) for day in days]


def _point(label, key, years, buckets) -> ComparisonPoint:
    return ComparisonPoint(
        label=label,
        values={year: round2(buckets[year].get(key, 0.0)) for year in years},
    )
