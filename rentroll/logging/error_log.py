from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-run outcome log of failed rows (JSON Lines).

One file per run, `<logs_dir>/errors-YYYYMMDD-HHMMSS.log` (UTC), created only
when at least one row failed. Records are buffered during the import loop and
written by flush() once the loop has finished.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Collects failed-row records for one source file."""

    def __init__(self, logs_dir: Path | str = "logs") -> None:
        self.logs_dir = Path(logs_dir)
        self._pending: list[ErrorRecord] = []
        self._written = 0
        self._by_type: Counter[str] = Counter()
        self._file_path: Path | None = None

    def record(self, *, file: str, row: int, email: str, error_type: str, message: str) -> ErrorRecord:
        """Buffer a failure for ``row`` (``-1`` for a file-level problem)."""
        rec = ErrorRecord.create(file=file, row=row, email=email, error_type=error_type, message=message)
        self.append(rec)
        return rec

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)
        self._by_type[record.error_type] += 1

    def __len__(self) -> int:
        return self._written + len(self._pending)

    def counts_by_type(self) -> dict[str, int]:
        return dict(self._by_type)

    def _path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def file_path(self) -> Path | None:
        """Log file of this run; None until something has been written."""
        return self._file_path

    def flush(self) -> Path | None:
        """Append pending records; returns the log path (None if no row ever failed)."""
        if not self._pending:
            return self._file_path
        fp = self._path()
        with fp.open("a", encoding="utf-8") as f:
            for r in self._pending:
                f.write(r.to_json_line() + "\n")
        self._written += len(self._pending)
        self._pending.clear()
        return fp
