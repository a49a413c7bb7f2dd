from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..models.row_data import RawRow

"""Rent-roll reader (File Intake).

- 先頭シートのみ読む。1行目をヘッダ、2行目以降をデータ行として扱う。
- 全行が全ヘッダキーを持つよう揃える (欠損セル -> "")。
- CSV は文字列のまま、xlsx/xls はセル型 (数値/日付/文字列) を保持する。

Rent rolls are small (tens to low hundreds of rows) so the whole sheet is read
into memory with pandas.
"""

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "IntakeError",
    "EmptyFileError",
    "UnsupportedFormatError",
    "FileParseError",
    "IntakeResult",
    "read_rent_roll",
    "read_raw_frame",
    "frame_to_rows",
]

SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")
# Excel (Windows) の CSV 保存は cp1252 が多い
CSV_ENCODINGS = ("utf-8-sig", "cp1252")


class IntakeError(Exception):
    """Base class for errors that abort reading a rent-roll file."""


class EmptyFileError(IntakeError):
    """Raised when the first sheet contains no data rows."""


class UnsupportedFormatError(IntakeError):
    """Raised when the file is not .xlsx / .xls / .csv."""


class FileParseError(IntakeError):
    """Raised when the file exists but cannot be parsed as a spreadsheet."""


@dataclass(frozen=True)
class IntakeResult:
    file_name: str
    sheet_name: str
    headers: list[str]
    rows: list[RawRow]


def _read_csv(path: Path) -> pd.DataFrame:
    """Read a CSV as strings, trying UTF-8 first and then cp1252."""
    for encoding in CSV_ENCODINGS[:-1]:
        try:
            # keep_default_na=False: 'NA' 等の文字列をそのまま保持
            return pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True, encoding=encoding)
        except UnicodeDecodeError:
            continue
    return pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True, encoding=CSV_ENCODINGS[-1])


def read_raw_frame(path: Path) -> tuple[str, pd.DataFrame]:
    """Read the first sheet of ``path`` as a DataFrame (header = first row).

    Returns (sheet_name, frame). CSV files report the sheet name as the file stem.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"unsupported file type '{path.suffix or path.name}' (expected .xlsx, .xls or .csv)"
        )
    if not path.exists():
        raise FileParseError(f"file not found: {path}")

    try:
        if suffix == ".csv":
            return path.stem, _read_csv(path)
        with pd.ExcelFile(path) as xls:
            if not xls.sheet_names:
                raise EmptyFileError(f"{path.name}: workbook has no sheets")
            sheet_name = str(xls.sheet_names[0])
            df = xls.parse(sheet_name, header=0, dtype=object, keep_default_na=False)
        return sheet_name, df
    except pd.errors.EmptyDataError as e:
        raise EmptyFileError(f"{path.name}: no data found in the file") from e
    except IntakeError:
        raise
    except Exception as e:
        raise FileParseError(f"{path.name}: failed to parse file: {e}") from e


def _normalize_cell(val: Any) -> Any:
    """Convert a pandas/numpy cell into a plain Python value ("" for empty)."""
    if val is None:
        return ""
    if isinstance(val, float) and np.isnan(val):
        return ""
    if val is pd.NaT:
        return ""
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    if isinstance(val, np.generic):
        val = val.item()
        if isinstance(val, float) and np.isnan(val):
            return ""
    if isinstance(val, str) and val.strip() == "":
        return ""
    return val


def _is_blank_row(values: list[Any]) -> bool:
    return all(v == "" for v in values)


def frame_to_rows(df: pd.DataFrame) -> tuple[list[str], list[RawRow]]:
    """Turn a header-parsed DataFrame into (headers, RawRow list).

    Fully blank rows are dropped; row_number keeps the sheet row (header = 1).
    """
    headers = [str(c).strip() for c in df.columns.tolist()]
    rows: list[RawRow] = []
    for offset, raw in enumerate(df.itertuples(index=False, name=None)):
        cells = [_normalize_cell(v) for v in raw]
        if _is_blank_row(cells):
            continue
        values = dict.fromkeys(headers, "")
        for header, cell in zip(headers, cells, strict=False):
            values[header] = cell
        rows.append(RawRow(row_number=offset + 2, values=values))
    return headers, rows


def read_rent_roll(path: Path) -> IntakeResult:
    """Read a rent-roll file into ordered header-keyed rows.

    Raises:
        UnsupportedFormatError: extension is not .xlsx / .xls / .csv
        EmptyFileError: the first sheet has zero data rows
        FileParseError: the file is missing or unreadable
    """
    path = Path(path)
    sheet_name, df = read_raw_frame(path)
    headers, rows = frame_to_rows(df)
    if not rows:
        raise EmptyFileError(f"{path.name}: no data found in the file")
    return IntakeResult(file_name=path.name, sheet_name=sheet_name, headers=headers, rows=rows)


def describe_cell(val: Any) -> Any:
    """JSON-friendly rendering of a cell for --inspect-data output."""
    if isinstance(val, datetime):
        return val.isoformat()
    return val
