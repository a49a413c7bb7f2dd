from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from ..db.store import TenantStore
from ..logging.error_log import ErrorLogBuffer
from ..models.candidate import CandidateRecord
from ..models.processing_result import ImportResult, Outcome, RowOutcome
from .progress import ProgressTracker
from .saga import CompensatingStep, StepFailedError, run_with_compensation

"""Import executor: candidate records -> tenants + leases.

Rows are processed sequentially in input order, each datastore call awaited
before the next. Per row:

1. create tenant {name, email}
2. create lease {tenant_id, property_address, unit_number, rent_amount_cents,
   due_date, status="active"}; on failure the tenant is deleted (compensation)

Forced duplicates (email already belongs to a tenant) take the update path
instead: rename the tenant, then update its active lease or create one.

A failing row is counted and recorded, never retried, and never aborts the
batch. success + updated + failed + cancelled == number of submitted rows.
"""

__all__ = [
    "CancellationToken",
    "execute_import",
    "submitted_records",
]

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked between rows."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def submitted_records(candidates: Sequence[CandidateRecord]) -> list[CandidateRecord]:
    """Records the executor will write: valid, and new or force-imported."""
    return [c for c in candidates if c.is_submittable]


def _create_new(store: TenantStore, rec: CandidateRecord) -> RowOutcome:
    steps = [
        CompensatingStep(
            name="create_tenant",
            action=lambda _prev: store.create_tenant(rec.name, rec.email),
            compensate=store.delete_tenant,
        ),
        CompensatingStep(
            name="create_lease",
            action=lambda prev: store.create_lease(
                tenant_id=prev[0],
                property_address=rec.property_address,
                unit_number=rec.unit_number_or_none,
                rent_amount_cents=rec.rent_amount_cents,
                due_date=rec.due_date,
                status="active",
            ),
        ),
    ]
    tenant_id, lease_id = run_with_compensation(steps)
    return RowOutcome(
        row_number=rec.row_number,
        email=rec.email,
        outcome=Outcome.CREATED,
        tenant_id=tenant_id,
        lease_id=lease_id,
    )


def _update_existing(store: TenantStore, rec: CandidateRecord) -> RowOutcome:
    tenant_id = rec.existing_tenant_id
    if tenant_id is None:  # pragma: no cover - is_duplicate implies an id
        raise ValueError("forced duplicate without existing tenant id")
    store.update_tenant_name(tenant_id, rec.name)
    lease_id = store.find_active_lease(tenant_id)
    if lease_id is not None:
        store.update_lease(
            lease_id,
            property_address=rec.property_address,
            unit_number=rec.unit_number_or_none,
            rent_amount_cents=rec.rent_amount_cents,
            due_date=rec.due_date,
        )
    else:
        lease_id = store.create_lease(
            tenant_id=tenant_id,
            property_address=rec.property_address,
            unit_number=rec.unit_number_or_none,
            rent_amount_cents=rec.rent_amount_cents,
            due_date=rec.due_date,
            status="active",
        )
    return RowOutcome(
        row_number=rec.row_number,
        email=rec.email,
        outcome=Outcome.UPDATED,
        tenant_id=tenant_id,
        lease_id=lease_id,
    )


def _failure(rec: CandidateRecord, e: Exception) -> tuple[RowOutcome, str]:
    if isinstance(e, StepFailedError):
        reason = f"{e.step}: {e.cause}"
        if e.compensation_failed:
            reason += f" (compensation failed: {', '.join(e.compensation_failed)})"
        error_type = f"{e.step.upper()}_ERROR"
    else:
        reason = str(e) or type(e).__name__
        error_type = "UPDATE_ERROR" if (rec.is_duplicate and rec.force_import) else "UNEXPECTED_ERROR"
    return RowOutcome(row_number=rec.row_number, email=rec.email, outcome=Outcome.FAILED, reason=reason), error_type


def execute_import(
    candidates: Sequence[CandidateRecord],
    store: TenantStore,
    *,
    cancel_token: CancellationToken | None = None,
    error_log: ErrorLogBuffer | None = None,
    file_name: str = "",
    on_row_done: Callable[[RowOutcome], Any] | None = None,
) -> ImportResult:
    """Write every submittable candidate to ``store``.

    Args:
        candidates: all records from the validation pass (invalid ones are ignored)
        store: datastore collaborator
        cancel_token: checked before each row; remaining rows become CANCELLED
        error_log: failed rows are appended as ErrorRecord
        file_name: source file name for error records
        on_row_done: callback after each submitted row (progress display)

    Returns:
        ImportResult with counts and per-row outcomes
    """
    started_at = datetime.now(UTC)
    outcomes: list[RowOutcome] = []

    # 有効だが強制指定のない重複はスキップ扱い (書き込みなし)
    for rec in candidates:
        if rec.is_valid and rec.is_duplicate and not rec.force_import:
            outcomes.append(
                RowOutcome(
                    row_number=rec.row_number,
                    email=rec.email,
                    outcome=Outcome.SKIPPED,
                    reason="email belongs to an existing tenant",
                    tenant_id=rec.existing_tenant_id,
                )
            )

    to_submit = submitted_records(candidates)
    logger.info("importing %d of %d rows", len(to_submit), len(candidates))

    with ProgressTracker(len(to_submit)) as progress:
        for rec in to_submit:
            if cancel_token is not None and cancel_token.cancelled:
                outcomes.append(
                    RowOutcome(
                        row_number=rec.row_number,
                        email=rec.email,
                        outcome=Outcome.CANCELLED,
                        reason="import cancelled",
                    )
                )
                continue

            progress.start_row(rec.row_number)
            try:
                if rec.is_duplicate and rec.force_import:
                    outcome = _update_existing(store, rec)
                else:
                    outcome = _create_new(store, rec)
            except Exception as e:
                # 1行の失敗でバッチを止めない
                outcome, error_type = _failure(rec, e)
                logger.warning("row=%d email=%s failed: %s", rec.row_number, rec.email, outcome.reason)
                if error_log is not None:
                    error_log.record(
                        file=file_name,
                        row=rec.row_number,
                        email=rec.email,
                        error_type=error_type,
                        message=outcome.reason or "",
                    )
            outcomes.append(outcome)
            progress.finish_row(outcome)
            if on_row_done is not None:
                on_row_done(outcome)

    outcomes.sort(key=lambda o: o.row_number)
    return ImportResult.from_outcomes(outcomes, started_at=started_at, finished_at=datetime.now(UTC))
