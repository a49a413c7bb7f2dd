from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

"""Compensating-action helper for dependent writes.

The datastore exposes no multi-table transaction to this tool, so a tenant and
its lease are written as two separate calls. Steps run in order; when one
fails, the steps that already completed are undone in reverse order.
Compensation is best-effort: a failing undo is logged and not raised.
"""

__all__ = [
    "CompensatingStep",
    "StepFailedError",
    "run_with_compensation",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompensatingStep:
    """One step of a compensated sequence.

    action: receives the results of previously completed steps, returns this step's result
    compensate: receives this step's result; None when nothing needs undoing
    """
    name: str
    action: Callable[[list[Any]], Any]
    compensate: Callable[[Any], None] | None = None


class StepFailedError(Exception):
    """A step failed; earlier steps were compensated (best-effort)."""

    def __init__(self, step: str, cause: BaseException, compensated: list[str], compensation_failed: list[str]):
        self.step = step
        self.cause = cause
        self.compensated = compensated
        self.compensation_failed = compensation_failed
        super().__init__(f"{step} failed: {cause}")


def run_with_compensation(steps: Sequence[CompensatingStep]) -> list[Any]:
    """Run ``steps`` in order, undoing completed ones if a later step fails.

    Returns the list of step results on success.

    Raises:
        StepFailedError: wrapping the first failure, after compensation ran
    """
    results: list[Any] = []
    done: list[CompensatingStep] = []
    for step in steps:
        try:
            result = step.action(list(results))
        except Exception as e:
            compensated: list[str] = []
            failed: list[str] = []
            for prev, prev_result in reversed(list(zip(done, results, strict=True))):
                if prev.compensate is None:
                    continue
                try:
                    prev.compensate(prev_result)
                    compensated.append(prev.name)
                except Exception as undo_e:
                    # 補償失敗は記録のみ (再送しない)
                    failed.append(prev.name)
                    logger.warning("compensation step=%s failed: %s", prev.name, undo_e)
            raise StepFailedError(step.name, e, compensated, failed) from e
        results.append(result)
        done.append(step)
    return results
