"""Domain models for the rent-roll import tool.

This package contains the dataclasses passed between the pipeline stages:
raw spreadsheet rows, the column mapping, validated candidate records and the
aggregated import result.
"""

from .candidate import CandidateRecord
from .column_mapping import (
    ALL_FIELDS,
    FIELD_LABELS,
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    UNMAPPED,
    ColumnMapping,
    MappingError,
)
from .config_models import DatabaseConfig, ImportConfig
from .error_record import ErrorRecord
from .processing_result import ImportResult, RowOutcome
from .row_data import RawRow

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Mapping
    "ALL_FIELDS",
    "FIELD_LABELS",
    "OPTIONAL_FIELDS",
    "REQUIRED_FIELDS",
    "UNMAPPED",
    "ColumnMapping",
    "MappingError",
    # Processing models
    "RawRow",
    "CandidateRecord",
    "ImportResult",
    "RowOutcome",
    "ErrorRecord",
]
