from __future__ import annotations

import sys
from collections import Counter
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.processing_result import Outcome, RowOutcome

"""Row progress for the import loop (tqdm, TTY only).

Two datastore calls per row make a few hundred rows take noticeable time, so
one bar advances per submitted row with running ok/failed counts. Redirected
output and CI get no bar; the SUMMARY line covers them.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Per-row progress bar that tallies row outcomes as they arrive."""

    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.tally: Counter[Outcome] = Counter()

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        if self.enabled and total_rows > 0:
            self.pbar = tqdm(total=total_rows, desc=description, unit="row", leave=True, ncols=80, ascii=True)

    @property
    def done(self) -> int:
        return sum(self.tally.values())

    def start_row(self, row_number: int) -> None:
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} (row {row_number})")

    def finish_row(self, outcome: RowOutcome) -> None:
        self.tally[outcome.outcome] += 1
        if self.pbar is None:
            return
        self.pbar.update(1)
        self.pbar.set_description(self.description)
        self.pbar.set_postfix(
            ok=self.tally[Outcome.CREATED] + self.tally[Outcome.UPDATED],
            failed=self.tally[Outcome.FAILED],
        )

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
