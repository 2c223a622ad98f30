from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Dict, Mapping
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/London"


@dataclass(frozen=True)
class Reading:
    """Consumption for one metering interval, keyed by its raw start label."""

    timestamp: str
    consumption_kwh: float


@dataclass(frozen=True)
class SeriesPoint:
    """One entry of a consumption series (half-hourly or daily)."""

    date: str
    value: float

    def as_dict(self) -> Dict[str, object]:
        return {"date": self.date, "value": self.value}


@dataclass(frozen=True)
class ComparisonPoint:
    """Values per year sharing one alignment label (``MM-DD`` or day of month)."""

    label: str
    values: Dict[int, float]

    def as_dict(self) -> Dict[str, object]:
        point: Dict[str, object] = {"date": self.label}
        for year, value in self.values.items():
            point[str(year)] = value
        return point


@dataclass(frozen=True)
class Agreement:
    """Assignment of a tariff code to a meter point for a period."""

    tariff_code: str
    valid_from: datetime
    valid_to: datetime | None = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        if self.valid_from > end:
            return False
        return self.valid_to is None or self.valid_to >= start

    def is_active(self, instant: datetime) -> bool:
        if self.valid_from > instant:
            return False
        return self.valid_to is None or self.valid_to > instant

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "Agreement":
        valid_to = row.get("valid_to")
        return cls(
            tariff_code=str(row["tariff_code"]),
            valid_from=_ensure_datetime(row["valid_from"]),
            valid_to=_ensure_datetime(valid_to) if valid_to else None,
        )


@dataclass(frozen=True)
class RateEntry:
    """Unit rate in pence per kWh (inc. VAT) valid over ``[valid_from, valid_to)``."""

    unit_rate_inc_vat: float
    valid_from: datetime
    valid_to: datetime | None = None

    def contains(self, instant: datetime) -> bool:
        if instant < self.valid_from:
            return False
        return self.valid_to is None or instant < self.valid_to

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> "RateEntry":
        valid_to = row.get("valid_to")
        return cls(
            unit_rate_inc_vat=float(row["value_inc_vat"]),
            valid_from=_ensure_datetime(row["valid_from"]),
            valid_to=_ensure_datetime(valid_to) if valid_to else None,
        )


@dataclass(frozen=True)
class StandingCharge:
    """Daily standing charge in pence (inc. VAT)."""

    per_day_inc_vat: float


@dataclass(frozen=True)
class CostedInterval:
    """A reading priced against the rate in force at its start.

    ``applied_rate`` is in pence per kWh; ``cost`` and
    ``standing_charge_share`` are in pounds.
    """

    timestamp: str
    consumption_kwh: float
    cost: float
    applied_rate: float
    standing_charge_share: float

    def as_dict(self) -> Dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "consumption_kwh": self.consumption_kwh,
            "cost": self.cost,
            "applied_rate": self.applied_rate,
            "standing_charge_share": self.standing_charge_share,
        }


@dataclass(frozen=True)
class TariffSummary:
    """Human-facing tariff overview; rates in pence."""

    standard_rate: float
    night_rate: float | None
    standing_charge: float
    tariff_code: str

    @property
    def is_time_of_use(self) -> bool:
        return self.night_rate is not None

    def as_dict(self) -> Dict[str, object]:
        return {
            "standard_rate": self.standard_rate,
            "night_rate": self.night_rate,
            "standing_charge": self.standing_charge,
            "tariff_code": self.tariff_code,
            "time_of_use": self.is_time_of_use,
        }


@dataclass(frozen=True)
class SeriesStats:
    total_days: int
    total: float
    daily_average: float


@dataclass(frozen=True)
class YearCostSettings:
    """User-entered cost inputs for one year, in pounds per kWh."""

    unit_cost: float = 0.0
    night_rate_enabled: bool = False
    night_rate: float = 0.0


YearCostMap = Dict[int, YearCostSettings]


def round2(value: float) -> float:
    return round(value, 2)


def resolve_timezone(timezone: str | ZoneInfo) -> ZoneInfo:
    if isinstance(timezone, ZoneInfo):
        return timezone
    return ZoneInfo(timezone)


def parse_instant(label: str, timezone: str | ZoneInfo = DEFAULT_TIMEZONE) -> datetime | None:
    """Parse a reading label to an aware datetime, or ``None`` if unusable.

    Naive labels are interpreted in ``timezone``.
    """

    raw = (label or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=resolve_timezone(timezone))
    return parsed


def _ensure_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(raw)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=dt_timezone.utc)
    return parsed
