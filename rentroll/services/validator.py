from __future__ import annotations

import re
import warnings
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from ..models.candidate import CandidateRecord, to_cents
from ..models.column_mapping import UNMAPPED, ColumnMapping
from ..models.row_data import RawRow

"""Row validation / normalization.

Every RawRow becomes exactly one CandidateRecord (same order). Validation
errors are data on the record, never exceptions. The function is pure apart
from reading the clock when ``today`` is not supplied, and it is re-run in full
whenever the mapping changes.
"""

__all__ = [
    "EMAIL_PATTERN",
    "validate_rows",
    "parse_rent_amount",
    "parse_due_date",
    "first_of_next_month",
    "today_in",
    "force_all_duplicates",
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# parseFloat 互換: 先頭の数値部分のみ読む ("1200abc" -> 1200)
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_NUMERIC_TEXT = re.compile(r"^\s*\d+(?:\.\d+)?\s*$")
# pandas は相対日付として解釈するが、日付セルとしては無効扱い
_RELATIVE_DATE_WORDS = frozenset({"now", "today", "yesterday", "tomorrow"})

# 1900 date system. Serial 60 is the nonexistent 1900-02-29.
_SERIAL_EPOCH = date(1899, 12, 30)
_SERIAL_EPOCH_PRE_LEAP = date(1899, 12, 31)
_MAX_SERIAL = (date(9999, 12, 31) - _SERIAL_EPOCH).days

ERR_INVALID_RENT = "Invalid rent amount"
ERR_NAME_REQUIRED = "Name is required"
ERR_EMAIL_REQUIRED = "Email is required"
ERR_EMAIL_FORMAT = "Invalid email format"
ERR_ADDRESS_REQUIRED = "Property address is required"
ERR_RENT_REQUIRED = "Valid rent amount is required"


def today_in(timezone: str = "UTC") -> date:
    """Current calendar date in ``timezone``."""
    if timezone == "UTC":
        return datetime.now(UTC).date()
    return datetime.now(ZoneInfo(timezone)).date()


def first_of_next_month(today: date) -> date:
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)


def _cell_text(value: Any) -> str:
    """Text form of a cell; empty/zero/false cells read as ""."""
    if value is None or value == "" or value is False:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def parse_rent_amount(value: Any) -> Decimal | None:
    """Parse a currency cell ("$1,200.00", 1200, "950") into dollars.

    Returns None when no number can be read. Sign is kept; callers reject <= 0.
    """
    if isinstance(value, bool) or isinstance(value, (datetime, date)):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (value != value or value in (float("inf"), float("-inf"))):
            return None
        return Decimal(str(value))
    text = str(value or "").replace("$", "").replace(",", "")
    m = _LEADING_NUMBER.match(text)
    if not m:
        return None
    try:
        return Decimal(m.group(1))
    except InvalidOperation:  # pragma: no cover - regex guarantees a number
        return None


def _serial_to_date(serial: float) -> date | None:
    whole = int(serial)
    if whole < 1 or whole > _MAX_SERIAL or whole == 60:
        return None
    if whole < 60:
        return _SERIAL_EPOCH_PRE_LEAP + timedelta(days=whole)
    return _SERIAL_EPOCH + timedelta(days=whole)


def _parse_date_text(text: str) -> date | None:
    if text.lower() in _RELATIVE_DATE_WORDS:
        return None
    with warnings.catch_warnings():
        # 書式推測失敗時の UserWarning を抑止
        warnings.simplefilter("ignore")
        ts = pd.to_datetime(text, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC")
    return ts.date()


def parse_due_date(value: Any) -> date | None:
    """Parse a due-date cell.

    - datetime/date cells are used as-is
    - numeric cells (and numeric text) are spreadsheet date serials
    - other text goes through pandas' generic date parsing
    Returns None when no valid date results.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return _serial_to_date(value)
    text = str(value).strip()
    if not text:
        return None
    if _NUMERIC_TEXT.match(text):
        parsed = _serial_to_date(float(text))
        if parsed is not None:
            return parsed
    return _parse_date_text(text)


def _quantizable(amount: Decimal | None) -> Decimal | None:
    """None for amounts whose cents cannot be represented."""
    if amount is None:
        return None
    try:
        to_cents(amount)
    except InvalidOperation:
        return None
    return amount


def _validate_row(
    row: RawRow,
    mapping: ColumnMapping,
    default_due: date,
    existing_tenants: Mapping[str, str],
) -> CandidateRecord:
    errors: list[str] = []

    def cell(field_name: str) -> Any:
        header = mapping.header_for(field_name)
        if header == UNMAPPED:
            return ""
        return row.get(header, "")

    name = _cell_text(cell("name"))
    email = _cell_text(cell("email"))
    property_address = _cell_text(cell("property_address"))
    unit_number = _cell_text(cell("unit_number"))

    rent_amount = Decimal(0)
    rent_ok = False
    if mapping.rent_amount != UNMAPPED:
        parsed_rent = _quantizable(parse_rent_amount(cell("rent_amount")))
        if parsed_rent is None or parsed_rent <= 0:
            errors.append(ERR_INVALID_RENT)
        if parsed_rent is not None:
            rent_amount = parsed_rent
            rent_ok = parsed_rent > 0

    due_date = None
    if mapping.due_date != UNMAPPED:
        due_date = parse_due_date(cell("due_date"))
    if due_date is None:
        due_date = default_due

    if not name:
        errors.append(ERR_NAME_REQUIRED)
    if not email:
        errors.append(ERR_EMAIL_REQUIRED)
    elif not EMAIL_PATTERN.match(email):
        errors.append(ERR_EMAIL_FORMAT)
    if not property_address:
        errors.append(ERR_ADDRESS_REQUIRED)
    if not rent_ok:
        errors.append(ERR_RENT_REQUIRED)

    existing_id = existing_tenants.get(email.lower()) if email else None
    return CandidateRecord(
        row_number=row.row_number,
        name=name,
        email=email,
        property_address=property_address,
        unit_number=unit_number,
        rent_amount=rent_amount,
        due_date=due_date,
        errors=tuple(errors),
        is_duplicate=existing_id is not None,
        existing_tenant_id=existing_id,
    )


def validate_rows(
    rows: Sequence[RawRow],
    mapping: ColumnMapping,
    *,
    today: date | None = None,
    timezone: str = "UTC",
    existing_tenants: Mapping[str, str] | None = None,
) -> list[CandidateRecord]:
    """Validate and normalize ``rows`` under ``mapping``.

    Parameters
    ----------
    rows: RawRow list from File Intake
    mapping: column mapping chosen by the user
    today: reference date for the default due date (default: now in ``timezone``)
    existing_tenants: lower-cased email -> tenant id of tenants already stored
    """
    if today is None:
        today = today_in(timezone)
    # 1回の検証パスで全行同一のデフォルト期日
    default_due = first_of_next_month(today)
    known = {k.lower(): v for k, v in (existing_tenants or {}).items()}
    return [_validate_row(row, mapping, default_due, known) for row in rows]


def force_all_duplicates(
    records: Sequence[CandidateRecord], flag: bool
) -> list[CandidateRecord]:
    """Set force_import on every valid duplicate, leaving other records untouched."""
    return [
        r.with_force_import(flag) if (r.is_duplicate and r.is_valid) else r for r in records
    ]
