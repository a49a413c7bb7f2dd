from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

"""CandidateRecord model: one normalized, validated row ready for import.

Produced once per validation pass, one per RawRow and in the same order.
Records are replaced wholesale when the mapping changes and never mutated.
"""

__all__ = [
    "CandidateRecord",
    "to_cents",
]

_CENT = Decimal("1")


def to_cents(amount: Decimal) -> int:
    """Dollars -> integer cents, half-up.

    Raises decimal.InvalidOperation when the amount is too large to quantize.
    """
    return int((amount * 100).quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CandidateRecord:
    row_number: int  # 元シート行番号
    name: str
    email: str
    property_address: str
    unit_number: str
    rent_amount: Decimal  # dollars; Decimal(0) when unparseable
    due_date: date
    errors: tuple[str, ...] = ()
    is_duplicate: bool = False  # email already belongs to an existing tenant
    existing_tenant_id: str | None = None
    force_import: bool = False  # update the existing tenant instead of skipping
    is_valid: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "is_valid", len(self.errors) == 0)

    @property
    def rent_amount_cents(self) -> int:
        return to_cents(self.rent_amount)

    @property
    def unit_number_or_none(self) -> str | None:
        return self.unit_number or None

    @property
    def is_submittable(self) -> bool:
        """Valid, and either new or an existing tenant the user chose to update."""
        return self.is_valid and (not self.is_duplicate or self.force_import)

    def with_force_import(self, flag: bool) -> CandidateRecord:
        return replace(self, force_import=flag)
