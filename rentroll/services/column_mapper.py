from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..models.column_mapping import ALL_FIELDS, UNMAPPED, ColumnMapping, MappingError

"""Column auto-mapping heuristic.

Headers in a rent roll are written by people ("Tenant Name", "Monthly Rent",
"Apt #"), so the canonical fields are guessed with case-insensitive substring
rules. The result is only a default; the user corrects it before validation.
"""

__all__ = [
    "auto_map",
    "match_candidates",
    "ambiguous_fields",
    "apply_overrides",
]


def _matches(field_name: str, lower: str) -> bool:
    if field_name == "name":
        return "name" in lower and "unit" not in lower
    if field_name == "email":
        return "email" in lower or "e-mail" in lower
    if field_name == "property_address":
        return "address" in lower or "property" in lower
    if field_name == "unit_number":
        return "unit" in lower or "apt" in lower
    if field_name == "rent_amount":
        return "rent" in lower or "amount" in lower or "rate" in lower
    if field_name == "due_date":
        return "due" in lower or "date" in lower
    raise MappingError(f"unknown field: {field_name}")


def match_candidates(headers: Sequence[str]) -> dict[str, list[str]]:
    """Every header matching each field's rule, in file order."""
    candidates: dict[str, list[str]] = {f: [] for f in ALL_FIELDS}
    for header in headers:
        lower = header.lower()
        for field_name in ALL_FIELDS:
            if _matches(field_name, lower):
                candidates[field_name].append(header)
    return candidates


def auto_map(headers: Sequence[str]) -> ColumnMapping:
    """Default mapping: for each field the last matching header in file order wins."""
    chosen = {f: UNMAPPED for f in ALL_FIELDS}
    for field_name, matches in match_candidates(headers).items():
        if matches:
            chosen[field_name] = matches[-1]
    return ColumnMapping(**chosen)


def ambiguous_fields(headers: Sequence[str]) -> dict[str, list[str]]:
    """Fields whose heuristic matched more than one header."""
    return {f: m for f, m in match_candidates(headers).items() if len(m) > 1}


def apply_overrides(
    mapping: ColumnMapping, overrides: Mapping[str, str], headers: Sequence[str]
) -> ColumnMapping:
    """Apply user corrections (field -> header, "" to skip) on top of ``mapping``."""
    for field_name, header in overrides.items():
        mapping = mapping.with_field(field_name, header, headers)
    return mapping
