from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import math
import pathlib
from dataclasses import dataclass, field

import openpyxl

from usage_costing.models import Reading

log = logging.getLogger(__name__)

TIMESTAMP_HEADERS = ["start", "interval_start", "timestamp"]
CONSUMPTION_HEADERS = ["consumption (kwh)", "consumption", "kwh"]
SUPPORTED_SUFFIXES = {".csv", ".xlsx", ".xlsm"}


@dataclass(frozen=True)
class ParsingError:
    code: str
    message: str
    row: int | None = None


class UploadValidationError(Exception):
    def __init__(self, errors: list[ParsingError]) -> None:
        super().__init__("Upload validation failed")
        self.errors = errors

    def user_messages(self) -> list[dict[str, str | int]]:
        return [
            {
                "code": error.code,
                "message": error.message,
                "row": error.row or 0,
            }
            for error in self.errors
        ]


@dataclass(frozen=True)
class ParsedUpload:
    filename: str
    readings: list[Reading]
    skipped: list[ParsingError] = field(default_factory=list)


def parse_consumption_upload(file_bytes: bytes, original_filename: str) -> ParsedUpload:
    """Read a meter consumption export into readings.

    Structural problems (unknown format, missing columns) raise
    ``UploadValidationError``. Rows with an unreadable consumption value are
    skipped and reported; rows without a start time are passed through and
    left for the series normalizer to drop.
    """

    suffix = pathlib.Path(original_filename).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise UploadValidationError(
            [
                ParsingError(
                    code="unsupported_format",
                    message="Only CSV or Excel (.xlsx) files are supported.",
                )
            ]
        )

    errors: list[ParsingError] = []
    skipped: list[ParsingError] = []
    if suffix == ".csv":
        header, rows = _read_csv(file_bytes, errors)
    else:
        header, rows = _read_xlsx(file_bytes, errors)
    if errors:
        raise UploadValidationError(errors)

    timestamp_key = _find_header(header, TIMESTAMP_HEADERS)
    consumption_key = _find_header(header, CONSUMPTION_HEADERS)
    if timestamp_key is None or consumption_key is None:
        raise UploadValidationError(
            [
                ParsingError(
                    code="missing_columns",
                    message="Expected a 'Start' column and a 'Consumption (kWh)' column.",
                )
            ]
        )

    readings: list[Reading] = []
    for index, row in enumerate(rows, start=2):
        if not any(cell.strip() for cell in row):
            continue
        value = _parse_float(_cell(row, consumption_key), index, skipped)
        if value is None:
            continue
        readings.append(
            Reading(timestamp=_cell(row, timestamp_key).strip(), consumption_kwh=value)
        )

    if skipped:
        log.info("Skipped %d rows of %s", len(skipped), original_filename)
    return ParsedUpload(filename=original_filename, readings=readings, skipped=skipped)


def _read_csv(
    file_bytes: bytes,
    errors: list[ParsingError],
) -> tuple[list[str], list[list[str]]]:
    text = file_bytes.decode("utf-8-sig", errors="replace")
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if not header:
        errors.append(
            ParsingError(
                code="missing_header",
                message="CSV file has no header row.",
            )
        )
        return [], []
    return [name.strip() for name in header], [list(row) for row in reader]


def _read_xlsx(
    file_bytes: bytes,
    errors: list[ParsingError],
) -> tuple[list[str], list[list[str]]]:
    workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    sheet = workbook.active
    rows = list(sheet.iter_rows(values_only=True))
    workbook.close()
    if not rows:
        errors.append(
            ParsingError(
                code="empty_file",
                message="Excel file contains no data.",
            )
        )
        return [], []
    header = [_cell_to_str(cell) for cell in rows[0]]
    return header, [[_cell_to_str(cell) for cell in row] for row in rows[1:]]


def _parse_float(raw: str, row: int, skipped: list[ParsingError]) -> float | None:
    cleaned = raw.strip()
    if not cleaned:
        return 0.0
    try:
        value = float(cleaned)
    except ValueError:
        value = None
    # nan, inf and negative readings are not consumption
    if value is None or not math.isfinite(value) or value < 0:
        skipped.append(
            ParsingError(
                code="invalid_value",
                message=f"Invalid consumption value: {raw}.",
                row=row,
            )
        )
        return None
    return value


def _find_header(header: list[str], candidates: list[str]) -> int | None:
    lowered = {name.strip().lower(): index for index, name in enumerate(header)}
    for candidate in candidates:
        if candidate in lowered:
            return lowered[candidate]
    return None


def _cell(row: list[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index]


def _cell_to_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dt.date):
        return value.strftime("%Y-%m-%d")
    return str(value).strip()
