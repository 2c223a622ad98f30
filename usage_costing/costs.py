from __future__ import annotations

import logging
from typing import Iterable, List, Sequence
from zoneinfo import ZoneInfo

from .models import (
    DEFAULT_TIMEZONE,
    CostedInterval,
    Reading,
    StandingCharge,
    parse_instant,
    resolve_timezone,
)
from .tariffs import RateSchedule

log = logging.getLogger(__name__)

HALF_HOURS_PER_DAY = 48
PENCE_PER_POUND = 100


def calculate_interval_costs(
    readings: Sequence[Reading],
    schedule: RateSchedule,
    standing_charge: StandingCharge | None = None,
    *,
    intervals_per_day: int = HALF_HOURS_PER_DAY,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> List[CostedInterval]:
    """Price each reading with the rate in force at its start.

    Rates and standing charges come in pence; costs are returned in pounds.
    The standing charge is spread evenly over ``intervals_per_day``. When the
    schedule is empty every figure is zero and only consumption is carried.
    """

    if intervals_per_day <= 0:
        raise ValueError("intervals_per_day must be positive")

    if not schedule:
        log.warning("No rates available, costs will be zero")
        share = 0.0
    elif standing_charge is None:
        share = 0.0
    else:
        share = standing_charge.per_day_inc_vat / PENCE_PER_POUND / intervals_per_day

    tzinfo = resolve_timezone(timezone)
    results: List[CostedInterval] = []
    unpriced = 0
    for reading in readings:
        instant = parse_instant(reading.timestamp, tzinfo)
        if instant is None:
            continue
        entry = schedule.rate_at(instant) if schedule else None
        if entry is None:
            unpriced += 1
            rate = 0.0
        else:
            rate = entry.unit_rate_inc_vat
        results.append(
            CostedInterval(
                timestamp=reading.timestamp,
                consumption_kwh=reading.consumption_kwh,
                cost=reading.consumption_kwh * (rate / PENCE_PER_POUND),
                applied_rate=rate,
                standing_charge_share=share,
            )
        )
    if unpriced and schedule:
        log.warning("%d intervals had no matching rate", unpriced)
    return results


def total_cost(costs: Iterable[CostedInterval]) -> float:
    return sum(item.cost for item in costs)


def total_standing_charge(costs: Iterable[CostedInterval]) -> float:
    return sum(item.standing_charge_share for item in costs)
