from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Import result models for the rent-roll import tool.

ImportResult aggregates the executor's per-row outcomes. It is built once the
row loop has finished and is not revised afterwards (no automatic retry).
"""

__all__ = [
    "Outcome",
    "RowOutcome",
    "ImportResult",
]


class Outcome(Enum):
    """Per-row execution outcome.

    - CREATED: new tenant + lease created
    - UPDATED: existing tenant updated (forced duplicate)
    - FAILED: a datastore call failed; tenant compensated where needed
    - SKIPPED: valid duplicate that was not forced
    - CANCELLED: not attempted because the run was cancelled
    """
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RowOutcome:
    row_number: int  # 元シート行番号
    email: str
    outcome: Outcome
    reason: str | None = None
    tenant_id: str | None = None
    lease_id: str | None = None


@dataclass(frozen=True)
class ImportResult:
    """Aggregated counts plus the structured per-row outcome list."""
    success_count: int
    failed_count: int
    updated_count: int = 0
    skipped_count: int = 0
    cancelled_count: int = 0
    outcomes: tuple[RowOutcome, ...] = ()
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @classmethod
    def from_outcomes(
        cls,
        outcomes: list[RowOutcome],
        started_at: datetime | None = None,
        finished_at: datetime | None = None,
    ) -> ImportResult:
        def count(kind: Outcome) -> int:
            return sum(1 for o in outcomes if o.outcome is kind)

        return cls(
            success_count=count(Outcome.CREATED),
            failed_count=count(Outcome.FAILED),
            updated_count=count(Outcome.UPDATED),
            skipped_count=count(Outcome.SKIPPED),
            cancelled_count=count(Outcome.CANCELLED),
            outcomes=tuple(outcomes),
            started_at=started_at,
            finished_at=finished_at,
        )

    @property
    def attempted_count(self) -> int:
        return self.success_count + self.updated_count + self.failed_count

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def failures(self) -> list[RowOutcome]:
        return [o for o in self.outcomes if o.outcome is Outcome.FAILED]
