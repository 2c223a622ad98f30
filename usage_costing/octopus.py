"""Octopus Energy REST API client.

API documentation: https://developer.octopus.energy/docs/api/

Account and consumption endpoints need basic auth with the API key as the
username; product, rate and standing charge endpoints are public.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Tuple

import requests

from .models import (
    DEFAULT_TIMEZONE,
    Agreement,
    RateEntry,
    Reading,
    StandingCharge,
    TariffSummary,
)
from .tariffs import (
    RateSchedule,
    current_agreement,
    resolve_rate_schedule,
    summarize_tariff,
    tariff_codes_for_range,
)

log = logging.getLogger(__name__)

API_BASE_URL = "https://api.octopus.energy/v1"
EARLIEST_PERIOD = "2015-01-01T00:00:00Z"
TARIFF_SAMPLE_DAYS = 2
CONSUMPTION_PAGE_SIZE = 25000
RATES_PAGE_SIZE = 1500
STANDING_CHARGE_PAGE_SIZE = 100

ENERGY_TYPES = ("electricity", "gas")


class OctopusApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class MeterPoint:
    """A meter on the account; ``identifier`` is the MPAN or MPRN."""

    energy_type: str
    identifier: str
    serial_number: str
    address: str = ""
    is_current: bool = True
    is_export: bool = False

    def consumption_path(self) -> str:
        return (
            f"/{self.energy_type}-meter-points/{self.identifier}"
            f"/meters/{self.serial_number}/consumption/"
        )

    def as_dict(self) -> Dict[str, object]:
        return {
            "energy_type": self.energy_type,
            "identifier": self.identifier,
            "serial_number": self.serial_number,
            "address": self.address,
            "is_current": self.is_current,
            "is_export": self.is_export,
        }


class OctopusClient:
    def __init__(
        self,
        api_key: str,
        account_number: str,
        *,
        base_url: str = API_BASE_URL,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.account_number = account_number
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_account_details(self) -> Dict[str, object]:
        response = self._get(f"/accounts/{self.account_number}/", auth=True)
        if response.status_code == 401:
            raise OctopusApiError("Invalid API key or account number", 401)
        if response.status_code == 404:
            raise OctopusApiError("Account not found", 404)
        _raise_for_status(response, "API error")
        return response.json()

    def test_connection(self) -> Tuple[bool, str]:
        try:
            self.get_account_details()
        except (OctopusApiError, requests.RequestException) as exc:
            return False, str(exc)
        return True, "Successfully connected to Octopus Energy API"

    def get_consumption(
        self,
        meter_point: MeterPoint,
        period_from: str | None = None,
        period_to: str | None = None,
        *,
        page_size: int = CONSUMPTION_PAGE_SIZE,
    ) -> List[Dict[str, object]]:
        """Fetch every consumption record for the period, oldest first."""

        params = _period_params(page_size, period_from, period_to)
        params["order_by"] = "period"
        response = self._get(meter_point.consumption_path(), params=params, auth=True)
        _raise_for_status(response, f"Failed to fetch {meter_point.energy_type} consumption")
        data = response.json()
        results = list(data.get("results", []))
        next_url = data.get("next")
        while next_url:
            response = self._get_url(next_url, auth=True)
            if not response.ok:
                log.warning(
                    "Stopped paging consumption after %d records: %s",
                    len(results),
                    response.status_code,
                )
                break
            data = response.json()
            results.extend(data.get("results", []))
            next_url = data.get("next")
        log.debug("Fetched %d consumption records for %s", len(results), meter_point.identifier)
        return results

    def get_available_date_range(self, meter_point: MeterPoint) -> Tuple[str, str]:
        """Dates (``YYYY-MM-DD``) of the earliest and latest record for a meter."""

        path = meter_point.consumption_path()
        earliest_response = self._get(
            path,
            params={"order_by": "period", "page_size": 1, "period_from": EARLIEST_PERIOD},
            auth=True,
        )
        _raise_for_status(earliest_response, "Failed to fetch earliest date")
        # the API returns newest first by default
        latest_response = self._get(path, params={"page_size": 1}, auth=True)
        _raise_for_status(latest_response, "Failed to fetch latest date")

        earliest = earliest_response.json().get("results", [])
        latest = latest_response.json().get("results", [])
        if not earliest or not latest:
            raise OctopusApiError(
                "No consumption data available for this meter. The property may "
                "have been moved out of, or the meter is no longer active."
            )
        return (
            str(earliest[0]["interval_start"]).split("T")[0],
            str(latest[0]["interval_start"]).split("T")[0],
        )

    def get_tariff_rates(
        self,
        tariff_code: str,
        energy_type: str,
        period_from: str | None = None,
        period_to: str | None = None,
    ) -> List[RateEntry]:
        response = self._get(
            _tariff_path(tariff_code, energy_type, "standard-unit-rates"),
            params=_period_params(RATES_PAGE_SIZE, period_from, period_to),
        )
        if not response.ok:
            log.warning("Failed to fetch tariff rates for %s: %s", tariff_code, response.status_code)
            return []
        return [RateEntry.from_row(row) for row in response.json().get("results", [])]

    def get_standing_charge(
        self,
        tariff_code: str,
        energy_type: str,
        period_from: str | None = None,
        period_to: str | None = None,
    ) -> StandingCharge | None:
        """Most recent standing charge for the tariff within the period."""

        response = self._get(
            _tariff_path(tariff_code, energy_type, "standing-charges"),
            params=_period_params(STANDING_CHARGE_PAGE_SIZE, period_from, period_to),
        )
        if not response.ok:
            log.warning(
                "Failed to fetch standing charges for %s: %s", tariff_code, response.status_code
            )
            return None
        results = response.json().get("results", [])
        if not results:
            return None
        return StandingCharge(per_day_inc_vat=float(results[0]["value_inc_vat"]))

    def _get(
        self,
        path: str,
        *,
        params: Mapping[str, object] | None = None,
        auth: bool = False,
    ) -> requests.Response:
        return self._get_url(f"{self.base_url}{path}", params=params, auth=auth)

    def _get_url(
        self,
        url: str,
        *,
        params: Mapping[str, object] | None = None,
        auth: bool = False,
    ) -> requests.Response:
        return self.session.get(
            url,
            params=params,
            auth=(self.api_key, "") if auth else None,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )


def product_code(tariff_code: str) -> str:
    """``E-1R-AGILE-FLEX-22-11-25-C`` -> ``AGILE-FLEX-22-11-25``."""

    return "-".join(tariff_code.split("-")[2:-1])


def extract_meter_points(account: Mapping[str, object]) -> List[MeterPoint]:
    """Every meter on the account, current properties first."""

    meter_points: List[MeterPoint] = []
    for prop in account.get("properties", []):
        is_current = prop.get("moved_out_at") is None
        suffix = " (Current)" if is_current else " (Moved out)"
        address = f"{prop.get('address_line_1', '')}, {prop.get('town', '')}{suffix}"
        for point in prop.get("electricity_meter_points", []):
            for meter in point.get("meters", []):
                meter_points.append(
                    MeterPoint(
                        energy_type="electricity",
                        identifier=str(point["mpan"]),
                        serial_number=str(meter["serial_number"]),
                        address=address,
                        is_current=is_current,
                        is_export=bool(point.get("is_export", False)),
                    )
                )
        for point in prop.get("gas_meter_points", []):
            for meter in point.get("meters", []):
                meter_points.append(
                    MeterPoint(
                        energy_type="gas",
                        identifier=str(point["mprn"]),
                        serial_number=str(meter["serial_number"]),
                        address=address,
                        is_current=is_current,
                    )
                )
    return sorted(meter_points, key=lambda meter: not meter.is_current)


def agreements_for_meter(
    account: Mapping[str, object], meter_point: MeterPoint
) -> List[Agreement]:
    key = "mpan" if meter_point.energy_type == "electricity" else "mprn"
    agreements: List[Agreement] = []
    for prop in account.get("properties", []):
        for point in prop.get(f"{meter_point.energy_type}_meter_points", []):
            if str(point.get(key)) != meter_point.identifier:
                continue
            agreements.extend(Agreement.from_row(row) for row in point.get("agreements", []))
    return agreements


def consumption_to_readings(results: Iterable[Mapping[str, object]]) -> List[Reading]:
    return [
        Reading(
            timestamp=str(row.get("interval_start") or ""),
            consumption_kwh=float(row.get("consumption") or 0.0),
        )
        for row in results
    ]


def load_costing_inputs(
    client: OctopusClient,
    account: Mapping[str, object],
    meter_point: MeterPoint,
    start: datetime,
    end: datetime,
) -> Tuple[RateSchedule, StandingCharge | None]:
    """Fetch the historical rates and standing charge behind a billing window.

    The standing charge comes from the first tariff found for the window.
    """

    agreements = agreements_for_meter(account, meter_point)
    codes = tariff_codes_for_range(agreements, start, end)
    if not codes:
        log.warning(
            "No tariff codes found for %s between %s and %s", meter_point.identifier, start, end
        )
        return RateSchedule(), None

    period_from = start.isoformat()
    period_to = end.isoformat()
    rates_by_code: Dict[str, List[RateEntry]] = {}
    for code in codes:
        if code not in rates_by_code:
            rates_by_code[code] = client.get_tariff_rates(
                code, meter_point.energy_type, period_from, period_to
            )
    schedule = resolve_rate_schedule(agreements, start, end, rates_by_code)
    standing_charge = client.get_standing_charge(
        codes[0], meter_point.energy_type, period_from, period_to
    )
    return schedule, standing_charge


def load_tariff_summary(
    client: OctopusClient,
    account: Mapping[str, object],
    meter_point: MeterPoint,
    *,
    now: datetime,
    timezone: str = DEFAULT_TIMEZONE,
    sample_days: int = TARIFF_SAMPLE_DAYS,
) -> TariffSummary | None:
    """Summarize the active tariff from the last ``sample_days`` of rates."""

    agreements = agreements_for_meter(account, meter_point)
    agreement = current_agreement(agreements, now)
    if agreement is None:
        log.warning("No active tariff agreement found for %s", meter_point.identifier)
        return None

    period_from = (now - timedelta(days=sample_days)).isoformat()
    period_to = now.isoformat()
    rates = client.get_tariff_rates(
        agreement.tariff_code, meter_point.energy_type, period_from, period_to
    )
    standing_charge = client.get_standing_charge(
        agreement.tariff_code, meter_point.energy_type, period_from, period_to
    )
    return summarize_tariff(
        [agreement], rates, standing_charge, now=now, timezone=timezone
    )


def _tariff_path(tariff_code: str, energy_type: str, resource: str) -> str:
    if energy_type not in ENERGY_TYPES:
        raise ValueError(f"energy_type must be one of {', '.join(ENERGY_TYPES)}")
    return (
        f"/products/{product_code(tariff_code)}/{energy_type}-tariffs/"
        f"{tariff_code}/{resource}/"
    )


def _period_params(
    page_size: int, period_from: str | None, period_to: str | None
) -> Dict[str, object]:
    params: Dict[str, object] = {"page_size": page_size}
    if period_from:
        params["period_from"] = period_from
    if period_to:
        params["period_to"] = period_to
    return params


def _raise_for_status(response: requests.Response, message: str) -> None:
    if not response.ok:
        raise OctopusApiError(
            f"{message}: {response.status_code} {response.reason}", response.status_code
        )
