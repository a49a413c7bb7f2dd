from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from ..models.candidate import CandidateRecord
from ..models.processing_result import ImportResult

"""Summary line rendering and per-row outcome export.

SUMMARY line format:
SUMMARY rows={rows} valid={valid} invalid={invalid} success={success}
updated={updated} failed={failed} skipped={skipped} cancelled={cancelled}
elapsed_sec={elapsed}
"""

__all__ = [
    "render_summary_line",
    "render_preview_line",
    "write_outcome_report",
    "REPORT_COLUMNS",
]

REPORT_COLUMNS = ["row", "email", "outcome", "reason", "tenant_id", "lease_id"]


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_preview_line(candidates: Sequence[CandidateRecord]) -> str:
    valid = sum(1 for c in candidates if c.is_valid)
    duplicates = sum(1 for c in candidates if c.is_valid and c.is_duplicate)
    return (
        f"PREVIEW rows={len(candidates)} "
        f"valid={valid} "
        f"invalid={len(candidates) - valid} "
        f"duplicates={duplicates}"
    )


def render_summary_line(candidates: Sequence[CandidateRecord], result: ImportResult) -> str:
    """Render the SUMMARY line for a finished import.

    Examples:
        >>> from rentroll.models.processing_result import ImportResult
        >>> render_summary_line([], ImportResult(success_count=0, failed_count=0))
        'SUMMARY rows=0 valid=0 invalid=0 success=0 updated=0 failed=0 skipped=0 cancelled=0 elapsed_sec=0'
    """
    valid = sum(1 for c in candidates if c.is_valid)
    return (
        f"SUMMARY rows={len(candidates)} "
        f"valid={valid} "
        f"invalid={len(candidates) - valid} "
        f"success={result.success_count} "
        f"updated={result.updated_count} "
        f"failed={result.failed_count} "
        f"skipped={result.skipped_count} "
        f"cancelled={result.cancelled_count} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )


def write_outcome_report(path: Path, result: ImportResult) -> Path:
    """Write one CSV line per submitted/skipped row outcome."""
    records = [
        {
            "row": o.row_number,
            "email": o.email,
            "outcome": o.outcome.value,
            "reason": o.reason or "",
            "tenant_id": o.tenant_id or "",
            "lease_id": o.lease_id or "",
        }
        for o in result.outcomes
    ]
    df = pd.DataFrame(records, columns=REPORT_COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
