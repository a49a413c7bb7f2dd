from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from rentroll.models.column_mapping import ColumnMapping
from rentroll.models.row_data import RawRow
from rentroll.services.validator import (
    first_of_next_month,
    force_all_duplicates,
    parse_due_date,
    parse_rent_amount,
    validate_rows,
)

TODAY = date(2024, 1, 15)
MAPPING = ColumnMapping(
    name="Full Name",
    email="Email",
    property_address="Property",
    unit_number="Unit",
    rent_amount="Rent",
    due_date="Due",
)


def _row(n: int = 2, **overrides: object) -> RawRow:
    values = {
        "Full Name": "Alice Smith",
        "Email": "alice@example.com",
        "Property": "12 Oak St",
        "Unit": "1A",
        "Rent": "$1,200.00",
        "Due": "2024-07-01",
    }
    values.update(overrides)
    return RawRow(row_number=n, values=values)


def test_valid_row_is_normalized():
    [rec] = validate_rows([_row(**{"Full Name": "  Alice Smith  "})], MAPPING, today=TODAY)
    assert rec.is_valid
    assert rec.errors == ()
    assert rec.name == "Alice Smith"
    assert rec.rent_amount == Decimal("1200.00")
    assert rec.rent_amount_cents == 120000
    assert rec.due_date == date(2024, 7, 1)
    assert rec.unit_number == "1A"


def test_bad_rent_value_reports_both_errors():
    [rec] = validate_rows([_row(Rent="n/a")], MAPPING, today=TODAY)
    assert rec.is_valid is False
    assert list(rec.errors) == ["Invalid rent amount", "Valid rent amount is required"]
    assert rec.rent_amount == Decimal(0)


@pytest.mark.parametrize("rent", ["0", "-50", "", "$0.00"])
def test_non_positive_rent_is_invalid(rent):
    [rec] = validate_rows([_row(Rent=rent)], MAPPING, today=TODAY)
    assert "Invalid rent amount" in rec.errors
    assert "Valid rent amount is required" in rec.errors


def test_unmapped_rent_only_reports_required():
    mapping = MAPPING.with_field("rent_amount", "")
    [rec] = validate_rows([_row()], mapping, today=TODAY)
    assert list(rec.errors) == ["Valid rent amount is required"]


def test_all_errors_are_collected():
    row = _row(**{"Full Name": "", "Email": "not-an-email", "Property": "   ", "Rent": "abc"})
    [rec] = validate_rows([row], MAPPING, today=TODAY)
    assert list(rec.errors) == [
        "Invalid rent amount",
        "Name is required",
        "Invalid email format",
        "Property address is required",
        "Valid rent amount is required",
    ]


def test_empty_email_is_required_not_format():
    [rec] = validate_rows([_row(Email="")], MAPPING, today=TODAY)
    assert list(rec.errors) == ["Email is required"]


@pytest.mark.parametrize("email", ["a@b", "a b@c.com", "@example.com", "alice@@example.com"])
def test_invalid_email_formats(email):
    [rec] = validate_rows([_row(Email=email)], MAPPING, today=TODAY)
    assert "Invalid email format" in rec.errors


def test_missing_due_date_column_defaults_to_first_of_next_month():
    mapping = MAPPING.with_field("due_date", "")
    recs = validate_rows([_row(2), _row(3, Email="bob@example.com")], mapping, today=TODAY)
    assert recs[0].due_date == date(2024, 2, 1)
    assert recs[0].due_date == recs[1].due_date


def test_unparseable_due_date_defaults():
    [rec] = validate_rows([_row(Due="someday")], MAPPING, today=TODAY)
    assert rec.is_valid  # date problems are not errors
    assert rec.due_date == date(2024, 2, 1)


def test_parsed_due_date_is_never_overridden():
    recs = validate_rows([_row(2, Due=""), _row(3, Due="2024-03-15")], MAPPING, today=TODAY)
    assert recs[0].due_date == date(2024, 2, 1)
    assert recs[1].due_date == date(2024, 3, 15)


def test_records_match_rows_one_to_one():
    rows = [_row(2), _row(3, Rent="n/a"), _row(4, Email="x"), _row(5)]
    recs = validate_rows(rows, MAPPING, today=TODAY)
    assert len(recs) == len(rows)
    assert [r.row_number for r in recs] == [2, 3, 4, 5]
    for rec in recs:
        assert rec.is_valid == (len(rec.errors) == 0)


def test_numeric_cells_are_coerced_to_text():
    [rec] = validate_rows([_row(Unit=101.0, Rent=1200)], MAPPING, today=TODAY)
    assert rec.unit_number == "101"
    assert rec.rent_amount == Decimal("1200")


def test_duplicates_are_flagged_not_invalid():
    existing = {"ALICE@example.com": "t-1"}
    [rec] = validate_rows([_row(Email="Alice@Example.com")], MAPPING, today=TODAY, existing_tenants=existing)
    assert rec.is_valid
    assert rec.is_duplicate
    assert rec.existing_tenant_id == "t-1"
    assert rec.force_import is False
    assert rec.is_submittable is False


def test_force_all_duplicates_only_touches_valid_duplicates():
    existing = {"alice@example.com": "t-1", "bob@example.com": "t-2"}
    recs = validate_rows(
        [_row(2), _row(3, Email="bob@example.com", Rent="n/a"), _row(4, Email="carol@example.com")],
        MAPPING,
        today=TODAY,
        existing_tenants=existing,
    )
    forced = force_all_duplicates(recs, True)
    assert [r.force_import for r in forced] == [True, False, False]
    # 元のレコードは変更されない
    assert recs[0].force_import is False


@pytest.mark.parametrize(
    "value,expected",
    [
        ("$1,200.00", Decimal("1200.00")),
        ("1200", Decimal("1200")),
        (" 950.5 ", Decimal("950.5")),
        ("1200abc", Decimal("1200")),
        (1050, Decimal("1050")),
        (1050.25, Decimal("1050.25")),
        ("n/a", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_rent_amount(value, expected):
    assert parse_rent_amount(value) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (45352, date(2024, 3, 1)),  # spreadsheet serial
        (45352.75, date(2024, 3, 1)),  # time of day ignored
        ("45352", date(2024, 3, 1)),
        (1, date(1900, 1, 1)),
        (61, date(1900, 3, 1)),
        (datetime(2024, 5, 15, 0, 0), date(2024, 5, 15)),
        (date(2024, 5, 15), date(2024, 5, 15)),
        ("2024-05-15", date(2024, 5, 15)),
        ("May 15, 2024", date(2024, 5, 15)),
        ("not a date", None),
        (0, None),
        ("", None),
    ],
)
def test_parse_due_date(value, expected):
    assert parse_due_date(value) == expected


@pytest.mark.parametrize(
    "today,expected",
    [
        (date(2024, 1, 15), date(2024, 2, 1)),
        (date(2024, 1, 31), date(2024, 2, 1)),
        (date(2024, 12, 10), date(2025, 1, 1)),
    ],
)
def test_first_of_next_month(today, expected):
    assert first_of_next_month(today) == expected


def test_rent_cents_round_half_up():
    [rec] = validate_rows([_row(Rent="1200.005")], MAPPING, today=TODAY)
    assert rec.rent_amount_cents == 120001


@pytest.mark.parametrize("word", ["today", "now", "Today", " NOW "])
def test_relative_date_words_fall_back_to_default(word):
    assert parse_due_date(word) is None
    [rec] = validate_rows([_row(Due=word)], MAPPING, today=TODAY)
    assert rec.due_date == date(2024, 2, 1)


@pytest.mark.parametrize("rent", ["1e30", "99999999999999999999999999999"])
def test_rent_too_large_for_cents_is_invalid(rent):
    [rec] = validate_rows([_row(Rent=rent)], MAPPING, today=TODAY)
    assert rec.is_valid is False
    assert list(rec.errors) == ["Invalid rent amount", "Valid rent amount is required"]
    assert rec.rent_amount_cents == 0
