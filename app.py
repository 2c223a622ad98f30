from __future__ import annotations

import logging
import os
from datetime import date, datetime, timezone
from typing import Mapping
from zoneinfo import ZoneInfoNotFoundError

import requests
from flask import Flask, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from upload_flow import UploadValidationError, parse_consumption_upload
from usage_costing.aggregates import month_totals, percentage_changes, summarize_series, year_totals
from usage_costing.comparison import compare_months, compare_years
from usage_costing.costs import calculate_interval_costs
from usage_costing.models import SeriesPoint, YearCostSettings, resolve_timezone
from usage_costing.night_rate import build_year_costs, estimate_year_cost, night_share
from usage_costing.octopus import (
    MeterPoint,
    OctopusApiError,
    OctopusClient,
    agreements_for_meter,
    consumption_to_readings,
    extract_meter_points,
    load_costing_inputs,
    load_tariff_summary,
)
from usage_costing.reporting import build_cost_report
from usage_costing.series import (
    WINDOWS,
    available_windows,
    available_years,
    data_date_range,
    filter_by_window,
    normalize_readings,
)

log = logging.getLogger(__name__)

MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "10"))
DEFAULT_TIMEZONE = os.environ.get("USAGE_TIMEZONE", "Europe/London")
OCTOPUS_API_URL = os.environ.get("OCTOPUS_API_URL", "https://api.octopus.energy/v1")
OCTOPUS_TIMEOUT = float(os.environ.get("OCTOPUS_TIMEOUT", "30"))

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_MB * 1024 * 1024


@app.post("/api/upload")
def upload() -> object:
    try:
        window = _parse_choice_field("window", WINDOWS, default="all")
        target_date = _parse_date_field("date")
        timezone_name = _parse_timezone(request.form.get("timezone"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    series, error = _series_from_upload(timezone_name)
    if error is not None:
        return error

    filtered = filter_by_window(
        series, window, target_date=target_date, timezone=timezone_name
    )
    stats = summarize_series(filtered)
    date_range = data_date_range(series, timezone=timezone_name)
    return jsonify(
        {
            "series": [point.as_dict() for point in filtered],
            "stats": _stats_dict(stats),
            "windows": available_windows(series, timezone=timezone_name),
            "years": available_years(series, timezone=timezone_name),
            "night_share": round(night_share(series, timezone=timezone_name), 3),
            "date_range": (
                {"min": date_range[0], "max": date_range[1]} if date_range else None
            ),
        }
    )


@app.post("/api/compare")
def compare() -> object:
    try:
        mode = _parse_choice_field("mode", ("year", "month"), default="year")
        years = _parse_years_field("years")
        month = _parse_int_field("month", default=1, minimum=1, maximum=12)
        timezone_name = _parse_timezone(request.form.get("timezone"))
        cost_settings = build_year_costs(_parse_year_costs(years))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    series, error = _series_from_upload(timezone_name)
    if error is not None:
        return error

    if mode == "year":
        points = compare_years(series, years, timezone=timezone_name)
        totals = year_totals(series, years, timezone=timezone_name)
    else:
        points = compare_months(series, month, years, timezone=timezone_name)
        totals = month_totals(series, month, years, timezone=timezone_name)
    changes = percentage_changes(totals, years)
    cost_month = month if mode == "month" else None

    return jsonify(
        {
            "points": [point.as_dict() for point in points],
            "totals": {str(year): value for year, value in totals.items()},
            "percentage_changes": {str(year): value for year, value in changes.items()},
            "costs": {
                str(year): round(
                    estimate_year_cost(
                        series, year, settings, month=cost_month, timezone=timezone_name
                    ),
                    2,
                )
                for year, settings in cost_settings.items()
                if settings.unit_cost > 0
            },
        }
    )


@app.post("/api/octopus/connection")
def octopus_connection() -> object:
    payload = request.get_json(silent=True) or {}
    try:
        client = _octopus_client(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    connected, message = client.test_connection()
    if not connected:
        log.warning("Connection check failed: %s", message)
    return jsonify({"connected": connected, "message": message}), 200 if connected else 502


@app.post("/api/octopus/date-range")
def octopus_date_range() -> object:
    payload = request.get_json(silent=True) or {}
    try:
        client = _octopus_client(payload)
        meter_point = _meter_point(payload)
        earliest, latest = client.get_available_date_range(meter_point)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except (OctopusApiError, requests.RequestException) as exc:
        return _provider_error(exc)
    return jsonify({"min": earliest, "max": latest})


@app.post("/api/octopus/meters")
def octopus_meters() -> object:
    payload = request.get_json(silent=True) or {}
    try:
        client = _octopus_client(payload)
        account = client.get_account_details()
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except (OctopusApiError, requests.RequestException) as exc:
        return _provider_error(exc)
    return jsonify({"meters": [meter.as_dict() for meter in extract_meter_points(account)]})


@app.post("/api/octopus/tariff")
def octopus_tariff() -> object:
    payload = request.get_json(silent=True) or {}
    try:
        client = _octopus_client(payload)
        meter_point = _meter_point(payload)
        timezone_name = _parse_timezone(payload.get("timezone"))
        account = client.get_account_details()
        summary = load_tariff_summary(
            client,
            account,
            meter_point,
            now=datetime.now(timezone.utc),
            timezone=timezone_name,
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except (OctopusApiError, requests.RequestException) as exc:
        return _provider_error(exc)
    return jsonify({"tariff": summary.as_dict() if summary else None})


@app.post("/api/octopus/costs")
def octopus_costs() -> object:
    payload = request.get_json(silent=True) or {}
    try:
        client = _octopus_client(payload)
        meter_point = _meter_point(payload)
        timezone_name = _parse_timezone(payload.get("timezone"))
        start = _parse_instant_value(payload.get("start"), "start")
        end = _parse_instant_value(payload.get("end"), "end")
        if end <= start:
            raise ValueError("The end date must be after the start date.")
        account = client.get_account_details()
        records = client.get_consumption(meter_point, start.isoformat(), end.isoformat())
        schedule, standing_charge = load_costing_inputs(
            client, account, meter_point, start, end
        )
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except (OctopusApiError, requests.RequestException) as exc:
        return _provider_error(exc)

    readings = consumption_to_readings(records)
    costed = calculate_interval_costs(
        readings, schedule, standing_charge, timezone=timezone_name
    )
    report = build_cost_report(costed, timezone=timezone_name)
    series = normalize_readings(readings, timezone=timezone_name)
    return jsonify(
        {
            "report": report.as_dict(),
            "series": [point.as_dict() for point in series],
            "tariff_codes": sorted(
                {agreement.tariff_code for agreement in agreements_for_meter(account, meter_point)}
            ),
        }
    )


@app.errorhandler(RequestEntityTooLarge)
def handle_file_too_large(_: RequestEntityTooLarge) -> object:
    return (
        jsonify({"error": f"File is too large. At most {MAX_UPLOAD_MB} MB is allowed."}),
        413,
    )


def _series_from_upload(timezone_name: str) -> tuple[list[SeriesPoint], object | None]:
    if "file" not in request.files:
        return [], (jsonify({"error": "No file received."}), 400)
    file = request.files["file"]
    if not file.filename:
        return [], (jsonify({"error": "File name is missing."}), 400)
    try:
        parsed = parse_consumption_upload(file.read(), file.filename)
    except UploadValidationError as exc:
        return [], (
            jsonify({"error": "Upload validation failed.", "details": exc.user_messages()}),
            422,
        )
    return normalize_readings(parsed.readings, timezone=timezone_name), None


def _stats_dict(stats) -> dict[str, object] | None:
    if stats is None:
        return None
    return {
        "total_days": stats.total_days,
        "total": stats.total,
        "daily_average": stats.daily_average,
    }


def _octopus_client(payload: Mapping[str, object]) -> OctopusClient:
    api_key = str(payload.get("api_key") or "").strip()
    account_number = str(payload.get("account_number") or "").strip()
    if not api_key or not account_number:
        raise ValueError("An API key and account number are required.")
    return OctopusClient(
        api_key,
        account_number,
        base_url=OCTOPUS_API_URL,
        timeout=OCTOPUS_TIMEOUT,
    )


def _meter_point(payload: Mapping[str, object]) -> MeterPoint:
    energy_type = str(payload.get("energy_type") or "electricity")
    if energy_type not in ("electricity", "gas"):
        raise ValueError("Energy type must be electricity or gas.")
    identifier = str(payload.get("identifier") or "").strip()
    serial_number = str(payload.get("serial_number") or "").strip()
    if not identifier or not serial_number:
        raise ValueError("A meter point identifier and serial number are required.")
    return MeterPoint(
        energy_type=energy_type, identifier=identifier, serial_number=serial_number
    )


def _provider_error(exc: Exception) -> object:
    log.warning("Provider request failed: %s", exc)
    return jsonify({"error": str(exc)}), 502


def _parse_instant_value(raw: object, name: str) -> datetime:
    text = str(raw or "").strip()
    if not text:
        raise ValueError(f"A value for {name} is required.")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Value for {name} is invalid.") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_choice_field(name: str, choices: tuple[str, ...], *, default: str) -> str:
    raw = request.form.get(name, "").strip()
    if not raw:
        return default
    if raw not in choices:
        raise ValueError(f"Value for {name} must be one of {', '.join(choices)}.")
    return raw


def _parse_date_field(name: str) -> date | None:
    raw = request.form.get(name, "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError(f"Value for {name} is invalid.") from exc


def _parse_years_field(name: str) -> list[int]:
    raw = request.form.get(name, "").strip()
    if not raw:
        raise ValueError("At least one year is required.")
    try:
        years = [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise ValueError(f"Value for {name} is invalid.") from exc
    if not years:
        raise ValueError("At least one year is required.")
    return years


def _parse_year_costs(years: list[int]) -> dict[int, YearCostSettings]:
    settings: dict[int, YearCostSettings] = {}
    for year in years:
        unit_cost = _parse_float_field(f"cost_{year}", default=0.0, minimum=0.0)
        night_rate = _parse_float_field(f"night_rate_{year}", default=0.0, minimum=0.0)
        settings[year] = YearCostSettings(
            unit_cost=unit_cost,
            night_rate_enabled=night_rate > 0,
            night_rate=night_rate,
        )
    return settings


def _parse_float_field(
    name: str, *, default: float, minimum: float | None = None, maximum: float | None = None
) -> float:
    raw = request.form.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"Value for {name.replace('_', ' ')} is invalid.") from exc
    _validate_range(name, value, minimum, maximum)
    return value


def _parse_int_field(
    name: str, *, default: int, minimum: int | None = None, maximum: int | None = None
) -> int:
    raw = request.form.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Value for {name.replace('_', ' ')} is invalid.") from exc
    _validate_range(name, value, minimum, maximum)
    return value


def _validate_range(
    name: str, value: float, minimum: float | None, maximum: float | None
) -> None:
    if minimum is not None and value < minimum:
        raise ValueError(f"Value for {name.replace('_', ' ')} must be at least {minimum}.")
    if maximum is not None and value > maximum:
        raise ValueError(f"Value for {name.replace('_', ' ')} must be at most {maximum}.")


def _parse_timezone(value: object) -> str:
    timezone_name = str(value or "").strip() or DEFAULT_TIMEZONE
    try:
        resolve_timezone(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError("Unknown timezone given.") from exc
    return timezone_name


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.run(host="0.0.0.0", port=5000, debug=True)
