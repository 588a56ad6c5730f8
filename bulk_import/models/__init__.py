"""Domain models for the bulk user import pipeline."""

from .config_models import ApiConfig, ImportConfig
from .draft_record import DraftRecord, Role
from .header_mapping import HeaderMapping, LogicalField, MappingState
from .submission import (
    FailureKind,
    Reconciliation,
    RowFailure,
    RowOutcome,
    SubmissionBatch,
    SubmissionResult,
)

__all__ = [
    # Configuration models
    "ApiConfig",
    "ImportConfig",
    # Mapping models
    "HeaderMapping",
    "LogicalField",
    "MappingState",
    # Record models
    "DraftRecord",
    "Role",
    # Submission models
    "FailureKind",
    "Reconciliation",
    "RowFailure",
    "RowOutcome",
    "SubmissionBatch",
    "SubmissionResult",
]
