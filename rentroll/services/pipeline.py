from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Union

from ..db.store import TenantStore
from ..excel.reader import IntakeResult, read_rent_roll
from ..logging.error_log import ErrorLogBuffer
from ..models.candidate import CandidateRecord
from ..models.column_mapping import ColumnMapping
from ..models.import_step import ImportStep
from ..models.processing_result import ImportResult, RowOutcome
from .column_mapper import ambiguous_fields, auto_map
from .executor import CancellationToken, execute_import, submitted_records
from .validator import force_all_duplicates, validate_rows

"""Rent-roll import state machine.

    upload -> mapping -> preview -> importing -> complete
              mapping -> upload
                         preview -> mapping

Each state carries its own payload, so a state's data only exists while the
import is in that state. `reset()` returns to upload from anywhere.
"""

__all__ = [
    "InvalidTransitionError",
    "UploadState",
    "MappingState",
    "PreviewState",
    "ImportingState",
    "CompleteState",
    "RentRollImport",
]

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an operation is not allowed in the current step."""


@dataclass(frozen=True)
class UploadState:
    step: ImportStep = field(default=ImportStep.UPLOAD, init=False)


@dataclass(frozen=True)
class MappingState:
    intake: IntakeResult
    mapping: ColumnMapping
    step: ImportStep = field(default=ImportStep.MAPPING, init=False)

    @property
    def can_advance(self) -> bool:
        return self.mapping.is_complete


@dataclass(frozen=True)
class PreviewState:
    intake: IntakeResult
    mapping: ColumnMapping
    candidates: tuple[CandidateRecord, ...]
    step: ImportStep = field(default=ImportStep.PREVIEW, init=False)

    @property
    def valid_count(self) -> int:
        return sum(1 for c in self.candidates if c.is_valid and not c.is_duplicate)

    @property
    def invalid_count(self) -> int:
        return sum(1 for c in self.candidates if not c.is_valid)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for c in self.candidates if c.is_valid and c.is_duplicate)

    @property
    def total_to_import(self) -> int:
        return len(submitted_records(self.candidates))


@dataclass(frozen=True)
class ImportingState:
    file_name: str
    total: int
    processed: int = 0
    step: ImportStep = field(default=ImportStep.IMPORTING, init=False)


@dataclass(frozen=True)
class CompleteState:
    file_name: str
    candidates: tuple[CandidateRecord, ...]
    result: ImportResult
    step: ImportStep = field(default=ImportStep.COMPLETE, init=False)


State = Union[UploadState, MappingState, PreviewState, ImportingState, CompleteState]


class RentRollImport:
    """Drives one rent-roll import through its steps."""

    def __init__(self, *, timezone: str = "UTC", today: date | None = None) -> None:
        self.timezone = timezone
        self.today = today
        self._state: State = UploadState()

    @property
    def state(self) -> State:
        return self._state


    @property
    def step(self) -> ImportStep:
        return self._state.step

    def _not_allowed(self, *steps: ImportStep) -> InvalidTransitionError:
        allowed = ", ".join(s.value for s in steps)
        return InvalidTransitionError(f"not allowed in step '{self._state.step.value}' (expected {allowed})")

    def _mapping(self) -> MappingState:
        if not isinstance(self._state, MappingState):
            raise self._not_allowed(ImportStep.MAPPING)
        return self._state

    def _preview(self) -> PreviewState:
        if not isinstance(self._state, PreviewState):
            raise self._not_allowed(ImportStep.PREVIEW)
        return self._state

    # upload -> mapping
    def load_file(self, path: Path) -> MappingState:
        """Read ``path`` and pre-populate the mapping heuristically.

        Intake errors propagate and leave the import in the upload step.
        """
        if not isinstance(self._state, UploadState):
            raise self._not_allowed(ImportStep.UPLOAD)
        intake = read_rent_roll(path)
        for field_name, headers in ambiguous_fields(intake.headers).items():
            logger.warning("column '%s' matches several headers %s; using '%s'", field_name, headers, headers[-1])
        self._state = MappingState(intake=intake, mapping=auto_map(intake.headers))
        return self._state

    def set_mapping(self, field_name: str, header: str) -> MappingState:
        current = self._mapping()
        mapping = current.mapping.with_field(field_name, header, current.intake.headers)
        self._state = MappingState(intake=current.intake, mapping=mapping)
        return self._state

    def replace_mapping(self, mapping: ColumnMapping) -> MappingState:
        current = self._mapping()
        self._state = MappingState(intake=current.intake, mapping=mapping)
        return self._state

    # mapping -> upload
    def back_to_upload(self) -> UploadState:
        self._mapping()
        self._state = UploadState()
        return self._state

    # mapping -> preview
    def advance_to_preview(self, existing_tenants: Mapping[str, str] | None = None) -> PreviewState:
        """Validate every row under the current mapping.

        Raises:
            InvalidTransitionError: a required field is still unmapped
        """
        current = self._mapping()
        missing = current.mapping.missing_required()
        if missing:
            raise InvalidTransitionError(f"required fields not mapped: {', '.join(missing)}")
        candidates = validate_rows(
            current.intake.rows,
            current.mapping,
            today=self.today,
            timezone=self.timezone,
            existing_tenants=existing_tenants,
        )
        self._state = PreviewState(intake=current.intake, mapping=current.mapping, candidates=tuple(candidates))
        return self._state

    # preview -> mapping
    def back_to_mapping(self) -> MappingState:
        current = self._preview()
        self._state = MappingState(intake=current.intake, mapping=current.mapping)
        return self._state

    def set_force_import(self, index: int, flag: bool) -> PreviewState:
        """Choose whether the valid duplicate at ``index`` updates its existing tenant.

        Raises:
            IndexError: ``index`` is outside the candidate list
            InvalidTransitionError: the record is invalid or not a duplicate
        """
        current = self._preview()
        if not 0 <= index < len(current.candidates):
            raise IndexError(f"candidate index out of range: {index}")
        target = current.candidates[index]
        if not (target.is_valid and target.is_duplicate):
            raise InvalidTransitionError(f"row {target.row_number} is not a valid duplicate; nothing to force")
        rows = list(current.candidates)
        rows[index] = target.with_force_import(flag)
        self._state = PreviewState(intake=current.intake, mapping=current.mapping, candidates=tuple(rows))
        return self._state

    def force_all(self, flag: bool) -> PreviewState:
        current = self._preview()
        rows = force_all_duplicates(current.candidates, flag)
        self._state = PreviewState(intake=current.intake, mapping=current.mapping, candidates=tuple(rows))
        return self._state

    # preview -> importing -> complete
    def start_import(
        self,
        store: TenantStore,
        *,
        cancel_token: CancellationToken | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> CompleteState:
        preview = self._preview()
        file_name = preview.intake.file_name
        self._state = ImportingState(file_name=file_name, total=preview.total_to_import)

        def _advance(_outcome: RowOutcome) -> None:
            current = self._state
            if isinstance(current, ImportingState):
                self._state = ImportingState(
                    file_name=current.file_name, total=current.total, processed=current.processed + 1
                )

        result = execute_import(
            preview.candidates,
            store,
            cancel_token=cancel_token,
            error_log=error_log,
            file_name=file_name,
            on_row_done=_advance,
        )
        self._state = CompleteState(file_name=file_name, candidates=preview.candidates, result=result)
        return self._state

    def reset(self) -> UploadState:
        self._state = UploadState()
        return self._state
