from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Mapping, Protocol, Sequence, Tuple
from zoneinfo import ZoneInfo

from .models import (
    DEFAULT_TIMEZONE,
    Agreement,
    RateEntry,
    StandingCharge,
    TariffSummary,
    resolve_timezone,
)

log = logging.getLogger(__name__)

# Economy 7 style night window, by local hour of the rate's start
NIGHT_HOURS: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})
NIGHT_DISCOUNT_THRESHOLD = 0.8


@dataclass(frozen=True)
class RateSchedule:
    """Ordered unit rates; the first entry valid at an instant wins."""

    entries: Tuple[RateEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def rate_at(self, instant: datetime) -> RateEntry | None:
        for entry in self.entries:
            if entry.contains(instant):
                return entry
        return None

    @classmethod
    def from_entries(cls, entries: Iterable[RateEntry]) -> "RateSchedule":
        return cls(tuple(entries))


@dataclass(frozen=True)
class RateClassification:
    standard_rate: float
    night_rate: float | None = None


class TariffClassifier(Protocol):
    def classify(
        self, rates: Sequence[RateEntry], tzinfo: ZoneInfo
    ) -> RateClassification | None:
        ...


@dataclass(frozen=True)
class HourlySpreadClassifier:
    """Infer a day/night split from how recent rates vary by hour of day.

    A tariff counts as time-of-use when the cheapest night-hour rate is below
    ``threshold`` times the mean of the other hours.
    """

    night_hours: FrozenSet[int] = NIGHT_HOURS
    threshold: float = NIGHT_DISCOUNT_THRESHOLD

    def classify(
        self, rates: Sequence[RateEntry], tzinfo: ZoneInfo
    ) -> RateClassification | None:
        if not rates:
            return None
        by_hour: Dict[int, List[float]] = defaultdict(list)
        for rate in rates:
            hour = rate.valid_from.astimezone(tzinfo).hour
            by_hour[hour].append(rate.unit_rate_inc_vat)

        night_values = [
            value
            for hour, values in by_hour.items()
            if hour in self.night_hours
            for value in values
        ]
        day_values = [
            value
            for hour, values in by_hour.items()
            if hour not in self.night_hours
            for value in values
        ]
        if night_values and day_values:
            cheapest_night = min(night_values)
            mean_day = sum(day_values) / len(day_values)
            if cheapest_night < mean_day * self.threshold:
                return RateClassification(standard_rate=mean_day, night_rate=cheapest_night)

        mean_all = sum(rate.unit_rate_inc_vat for rate in rates) / len(rates)
        return RateClassification(standard_rate=mean_all)


def overlapping_agreements(
    agreements: Iterable[Agreement], start: datetime, end: datetime
) -> List[Agreement]:
    return [agreement for agreement in agreements if agreement.overlaps(start, end)]


def tariff_codes_for_range(
    agreements: Iterable[Agreement], start: datetime, end: datetime
) -> List[str]:
    """Tariff codes of every agreement overlapping ``[start, end]``, in order found."""

    return [agreement.tariff_code for agreement in overlapping_agreements(agreements, start, end)]


def current_agreement(agreements: Iterable[Agreement], now: datetime) -> Agreement | None:
    for agreement in agreements:
        if agreement.is_active(now):
            return agreement
    return None


def resolve_rate_schedule(
    agreements: Iterable[Agreement],
    start: datetime,
    end: datetime,
    rates_by_code: Mapping[str, Sequence[RateEntry]],
) -> RateSchedule:
    """Collect the rates of every agreement overlapping the range.

    Entries are ordered by ``valid_from``; entries starting together keep the
    order their agreements were found in.
    """

    collected: List[RateEntry] = []
    for code in tariff_codes_for_range(agreements, start, end):
        rates = rates_by_code.get(code)
        if not rates:
            log.warning("No rates available for tariff %s", code)
            continue
        collected.extend(rates)
    if not collected:
        log.warning("No tariff rates found between %s and %s", start, end)
    collected.sort(key=lambda entry: entry.valid_from)
    return RateSchedule(tuple(collected))


def summarize_tariff(
    agreements: Iterable[Agreement],
    rates: Sequence[RateEntry],
    standing_charge: StandingCharge | None,
    *,
    now: datetime,
    classifier: TariffClassifier | None = None,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> TariffSummary | None:
    """Summarize the agreement active at ``now`` from a recent sample of rates.

    Returns ``None`` when there is no active agreement or no rate to look at.
    """

    agreement = current_agreement(agreements, now)
    if agreement is None:
        log.warning("No active tariff agreement found")
        return None
    if not rates:
        log.warning("No rates found for tariff %s", agreement.tariff_code)
        return None

    classification = (classifier or HourlySpreadClassifier()).classify(
        rates, resolve_timezone(timezone)
    )
    if classification is None:
        return None
    return TariffSummary(
        standard_rate=classification.standard_rate,
        night_rate=classification.night_rate,
        standing_charge=standing_charge.per_day_inc_vat if standing_charge else 0.0,
        tariff_code=agreement.tariff_code,
    )
