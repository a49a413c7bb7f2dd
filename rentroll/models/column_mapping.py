from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, fields, replace

"""ColumnMapping model: canonical field -> spreadsheet header.

The canonical field set is fixed. name / email / property_address / rent_amount
must be mapped before an import can leave the mapping step; unit_number and
due_date are optional.
"""

__all__ = [
    "UNMAPPED",
    "REQUIRED_FIELDS",
    "OPTIONAL_FIELDS",
    "ALL_FIELDS",
    "FIELD_LABELS",
    "ColumnMapping",
    "MappingError",
]

# "skip" sentinel (未割当)
UNMAPPED = ""

REQUIRED_FIELDS: tuple[str, ...] = ("name", "email", "property_address", "rent_amount")
OPTIONAL_FIELDS: tuple[str, ...] = ("unit_number", "due_date")
ALL_FIELDS: tuple[str, ...] = REQUIRED_FIELDS + OPTIONAL_FIELDS

FIELD_LABELS: dict[str, str] = {
    "name": "Tenant Name",
    "email": "Email Address",
    "property_address": "Property Address",
    "unit_number": "Unit Number",
    "rent_amount": "Rent Amount",
    "due_date": "Due Date",
}


class MappingError(Exception):
    """Raised for an unknown canonical field or a header not present in the file."""


@dataclass(frozen=True)
class ColumnMapping:
    """Chosen header per canonical field. UNMAPPED ("") means skipped."""
    name: str = UNMAPPED
    email: str = UNMAPPED
    property_address: str = UNMAPPED
    unit_number: str = UNMAPPED
    rent_amount: str = UNMAPPED
    due_date: str = UNMAPPED

    def header_for(self, field_name: str) -> str:
        if field_name not in ALL_FIELDS:
            raise MappingError(f"unknown field: {field_name}")
        return getattr(self, field_name)

    def with_field(
        self, field_name: str, header: str, headers: Iterable[str] | None = None
    ) -> ColumnMapping:
        """Return a copy with ``field_name`` pointed at ``header``.

        When ``headers`` is given the header must be one of them (or UNMAPPED).
        """
        if field_name not in ALL_FIELDS:
            raise MappingError(f"unknown field: {field_name}")
        if headers is not None and header != UNMAPPED and header not in set(headers):
            raise MappingError(f"header not found in file: {header!r}")
        return replace(self, **{field_name: header})

    def missing_required(self) -> list[str]:
        return [f for f in REQUIRED_FIELDS if getattr(self, f) == UNMAPPED]

    @property
    def is_complete(self) -> bool:
        """Advancement gate: every required field has a concrete header."""
        return not self.missing_required()

    def as_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
