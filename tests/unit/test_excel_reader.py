from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from rentroll.excel.reader import (
    EmptyFileError,
    FileParseError,
    IntakeError,
    UnsupportedFormatError,
    read_rent_roll,
)
from tests.helpers import write_csv, write_xlsx


def test_read_csv_success(happy_csv: Path):
    intake = read_rent_roll(happy_csv)
    assert intake.file_name == "rent_roll.csv"
    assert intake.headers == ["Full Name", "Email", "Property", "Rent", "Due"]
    assert len(intake.rows) == 3
    first = intake.rows[0]
    assert first.row_number == 2  # header is sheet row 1
    assert first.values["Full Name"] == "Alice Smith"
    assert first.values["Rent"] == "$1,200.00"  # CSV cells stay text


def test_read_xlsx_keeps_cell_types(temp_workdir: Path):
    path = write_xlsx(
        temp_workdir / "data" / "roll.xlsx",
        [
            ["Tenant Name", "Email", "Address", "Unit", "Monthly Rent", "Due Date"],
            ["Alice", "alice@example.com", "12 Oak St", 101, 1200, datetime(2024, 7, 1)],
        ],
    )
    intake = read_rent_roll(path)
    assert intake.sheet_name == "Rent Roll"
    row = intake.rows[0]
    assert row.values["Unit"] == 101
    assert row.values["Monthly Rent"] == 1200
    assert isinstance(row.values["Due Date"], datetime)
    assert row.values["Due Date"].date().isoformat() == "2024-07-01"


def test_missing_cells_become_empty_string(temp_workdir: Path):
    path = write_xlsx(
        temp_workdir / "data" / "gaps.xlsx",
        [
            ["Name", "Email", "Unit"],
            ["Alice", None, "1A"],
            ["Bob", "bob@example.com", None],
        ],
    )
    intake = read_rent_roll(path)
    assert intake.rows[0].values["Email"] == ""
    assert intake.rows[1].values["Unit"] == ""
    # 全行が全ヘッダキーを持つ
    for row in intake.rows:
        assert set(row.values.keys()) == set(intake.headers)


def test_blank_rows_are_dropped(temp_workdir: Path):
    path = write_csv(
        temp_workdir / "data" / "blank.csv",
        [
            ["Name", "Email"],
            ["Alice", "alice@example.com"],
            ["", ""],
            ["Bob", "bob@example.com"],
        ],
    )
    intake = read_rent_roll(path)
    assert [r.values["Name"] for r in intake.rows] == ["Alice", "Bob"]
    assert [r.row_number for r in intake.rows] == [2, 4]


def test_header_only_csv_is_empty(temp_workdir: Path):
    path = write_csv(temp_workdir / "data" / "header_only.csv", [["Name", "Email"]])
    with pytest.raises(EmptyFileError):
        read_rent_roll(path)


def test_zero_byte_csv_is_empty(temp_workdir: Path):
    path = temp_workdir / "data" / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(EmptyFileError):
        read_rent_roll(path)


def test_header_only_xlsx_is_empty(temp_workdir: Path):
    path = write_xlsx(temp_workdir / "data" / "header_only.xlsx", [["Name", "Email"]])
    with pytest.raises(EmptyFileError):
        read_rent_roll(path)


def test_unsupported_extension(temp_workdir: Path):
    path = temp_workdir / "data" / "roll.pdf"
    path.write_bytes(b"%PDF-1.4")
    with pytest.raises(UnsupportedFormatError):
        read_rent_roll(path)


def test_uppercase_extension_is_accepted(temp_workdir: Path, happy_rows):
    path = write_csv(temp_workdir / "data" / "ROLL.CSV", happy_rows)
    assert len(read_rent_roll(path).rows) == 3


def test_corrupt_workbook_is_parse_error(temp_workdir: Path):
    path = temp_workdir / "data" / "broken.xlsx"
    path.write_bytes(b"this is not a zip archive")
    with pytest.raises(FileParseError):
        read_rent_roll(path)


def test_missing_file_is_intake_error(temp_workdir: Path):
    with pytest.raises(IntakeError):
        read_rent_roll(temp_workdir / "data" / "nope.csv")


def test_raw_rows_are_read_only(happy_csv: Path):
    row = read_rent_roll(happy_csv).rows[0]
    with pytest.raises(TypeError):
        row.values["Full Name"] = "Mallory"  # type: ignore[index]


def test_cp1252_csv_is_read(temp_workdir: Path):
    # Windows 版 Excel の「CSV (コンマ区切り)」保存を想定
    path = temp_workdir / "data" / "roll.csv"
    path.write_bytes("Name,Email,Property,Rent\nJosé Peña,jose@example.com,1 Main St,1200\n".encode("cp1252"))
    result = read_rent_roll(path)
    assert result.rows[0].get("Name") == "José Peña"
    assert result.rows[0].get("Rent") == "1200"


def test_utf8_csv_with_bom_is_read(temp_workdir: Path):
    path = temp_workdir / "data" / "roll.csv"
    path.write_bytes("Name,Email\nJosé Peña,jose@example.com\n".encode("utf-8-sig"))
    result = read_rent_roll(path)
    assert result.headers == ["Name", "Email"]
    assert result.rows[0].get("Name") == "José Peña"
