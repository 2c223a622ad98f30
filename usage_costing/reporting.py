from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List
from zoneinfo import ZoneInfo

from .aggregates import PeriodKey, aggregate_costs
from .costs import total_cost, total_standing_charge
from .models import DEFAULT_TIMEZONE, CostedInterval, round2


@dataclass(frozen=True)
class CostReport:
    total_consumption_kwh: float
    unit_cost: float
    standing_charge: float
    billed_total: float
    interval_count: int
    unpriced_intervals: int
    has_rates: bool
    daily_costs: Dict[PeriodKey, float]
    monthly_costs: Dict[PeriodKey, float]

    def as_dict(self) -> Dict[str, object]:
        return {
            "total_consumption_kwh": self.total_consumption_kwh,
            "unit_cost": self.unit_cost,
            "standing_charge": self.standing_charge,
            "billed_total": self.billed_total,
            "interval_count": self.interval_count,
            "unpriced_intervals": self.unpriced_intervals,
            "has_rates": self.has_rates,
            "daily": _format_periods(self.daily_costs),
            "monthly": _format_periods(self.monthly_costs),
        }


def build_cost_report(
    costs: Iterable[CostedInterval],
    *,
    timezone: str | ZoneInfo = DEFAULT_TIMEZONE,
) -> CostReport:
    """Total the priced intervals and aggregate them by day and month.

    ``has_rates`` is false when no interval could be priced, so callers can
    show consumption without claiming a cost.
    """

    costs_list = list(costs)
    unit_cost = total_cost(costs_list)
    standing = total_standing_charge(costs_list)
    unpriced = sum(1 for item in costs_list if item.applied_rate == 0)

    return CostReport(
        total_consumption_kwh=round2(sum(item.consumption_kwh for item in costs_list)),
        unit_cost=round2(unit_cost),
        standing_charge=round2(standing),
        billed_total=round2(unit_cost + standing),
        interval_count=len(costs_list),
        unpriced_intervals=unpriced,
        has_rates=bool(costs_list) and unpriced < len(costs_list),
        daily_costs=aggregate_costs(costs_list, period="day", timezone=timezone),
        monthly_costs=aggregate_costs(costs_list, period="month", timezone=timezone),
    )


def _format_periods(periods: Dict[PeriodKey, float]) -> List[Dict[str, object]]:
    formatted = []
    for key, value in sorted(periods.items()):
        formatted.append(
            {
                "period": "-".join(
                    f"{part:02d}" if index else str(part) for index, part in enumerate(key)
                ),
                "cost": round2(value),
            }
        )
    return formatted
