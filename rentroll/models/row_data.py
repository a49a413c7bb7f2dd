from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

"""RawRow model for the rent-roll import tool.

RawRow represents a single spreadsheet row as produced by File Intake, keyed by
the header text of the first row. It is never modified after intake.
"""

__all__ = [
    "RawRow",
]


@dataclass(frozen=True)
class RawRow:
    """One spreadsheet data row, header -> raw cell value.

    The row_number refers to the original sheet row number (header = row 1, so
    the first data row is 2). Every header of the sheet is present as a key;
    empty cells hold "".
    """
    row_number: int
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # 読み取り専用ビューに差し替え (後段での書き換え防止)
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, header: str, default: Any = "") -> Any:
        return self.values.get(header, default)
