from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

from .models import (
    DEFAULT_TIMEZONE,
    Reading,
    SeriesPoint,
    parse_instant,
    resolve_timezone,
    round2,
)

log = logging.getLogger(__name__)

WINDOWS = ("daily", "7d", "30d", "90d", "year", "all")

WINDOW_DAYS: Dict[str, int] = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "year": 365,
}

# Minimum span of data, in days, before a window is worth offering.
WINDOW_MIN_DAYS: Dict[str, int] = {
    "daily": 1,
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "year": 365,
    "all": 366,
}


def normalize_readings(
    readings: Iterable[Reading],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[SeriesPoint]:
    """Collapse raw readings into a sorted series keyed by their raw label.

    Readings sharing a label are summed; distinct labels on the same day stay
    distinct so half-hourly detail survives. Readings without a usable
    timestamp are dropped.
    """

    tzinfo = resolve_timezone(timezone)
    totals: Dict[str, float] = {}
    instants: Dict[str, datetime] = {}
    dropped = 0
    for reading in readings:
        label = (reading.timestamp or "").strip()
        instant = parse_instant(label, tzinfo)
        if instant is None:
            dropped += 1
            continue
        if label not in totals:
            totals[label] = 0.0
            instants[label] = instant
        totals[label] += reading.consumption_kwh
    if dropped:
        log.debug("Dropped %d readings without a usable timestamp", dropped)

    # sorted() is stable, so labels parsing to the same instant keep insertion order
    ordered = sorted(totals, key=lambda label: instants[label])
    return [SeriesPoint(date=label, value=round2(totals[label])) for label in ordered]


def filter_by_window(
    series: Sequence[SeriesPoint],
    window: str,
    *,
    target_date: date | str | None = None,
    now: datetime | None = None,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[SeriesPoint]:
    """Derive the display series for ``window``.

    ``daily`` with a target date returns the raw entries of that day; every
    other window is cut to the last N days (``all`` is uncut) and summed per
    calendar day.
    """

    if window not in WINDOWS:
        raise ValueError(f"window must be one of {', '.join(WINDOWS)}")
    if not series:
        return []
    tzinfo = resolve_timezone(timezone)

    if window == "daily" and target_date is not None:
        target = _ensure_date(target_date)
        return [
            point
            for point in series
            if _local_date(point.date, tzinfo) == target
        ]

    selected: Iterable[SeriesPoint] = series
    days = WINDOW_DAYS.get(window)
    if days:
        current = now or datetime.now(tzinfo)
        if current.tzinfo is None:
            current = current.replace(tzinfo=tzinfo)
        cutoff = current - timedelta(days=days)
        selected = [point for point in series if _on_or_after(point, cutoff, tzinfo)]
    return aggregate_daily(selected, timezone=tzinfo)


def aggregate_daily(
    series: Iterable[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[SeriesPoint]:
    """Sum series entries per local calendar day, rounding only the totals."""

    tzinfo = resolve_timezone(timezone)
    totals: Dict[date, float] = defaultdict(float)
    for point in series:
        day = _local_date(point.date, tzinfo)
        if day is None:
            continue
        totals[day] += point.value
    return [
        SeriesPoint(date=day.isoformat(), value=round2(totals[day]))
        for day in sorted(totals)
    ]


def data_span_days(
    series: Sequence[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> int:
    instants = _instants(series, resolve_timezone(timezone))
    if not instants:
        return 0
    span = max(instants) - min(instants)
    return math.ceil(span / timedelta(days=1))


def available_windows(
    series: Sequence[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[str]:
    """Windows whose minimum span is covered by the series."""

    span = data_span_days(series, timezone=timezone)
    return [window for window in WINDOWS if span >= WINDOW_MIN_DAYS[window]]


def available_years(
    series: Sequence[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[int]:
    tzinfo = resolve_timezone(timezone)
    return sorted({instant.year for instant in _instants(series, tzinfo)})


def data_date_range(
    series: Sequence[SeriesPoint],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> Tuple[str, str] | None:
    tzinfo = resolve_timezone(timezone)
    instants = _instants(series, tzinfo)
    if not instants:
        return None
    earliest = min(instants).astimezone(tzinfo).date()
    latest = max(instants).astimezone(tzinfo).date()
    return earliest.isoformat(), latest.isoformat()


def local_instant(label: str, tzinfo: ZoneInfo) -> datetime | None:
    instant = parse_instant(label, tzinfo)
    if instant is None:
        return None
    return instant.astimezone(tzinfo)


def _local_date(label: str, tzinfo: ZoneInfo) -> date | None:
    instant = local_instant(label, tzinfo)
    return instant.date() if instant is not None else None


def _on_or_after(point: SeriesPoint, cutoff: datetime, tzinfo: ZoneInfo) -> bool:
    instant = parse_instant(point.date, tzinfo)
    return instant is not None and instant >= cutoff


def _instants(series: Iterable[SeriesPoint], tzinfo: ZoneInfo) -> List[datetime]:
    parsed = (parse_instant(point.date, tzinfo) for point in series)
    return [instant for instant in parsed if instant is not None]


def _ensure_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Unsupported date type: {type(value)!r}")
