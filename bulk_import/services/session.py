from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from ..api.upsert_client import BatchMetrics
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import DEFAULT_BATCH_SIZE, ApiConfig
from ..models.draft_record import VALID_ROLES, DraftRecord
from ..models.header_mapping import HeaderMapping, LogicalField, MappingState
from ..models.submission import Reconciliation, SubmissionResult
from .header_mapper import DEFAULT_ALIASES, MappingSession
from .orchestrator import submit_records
from .reconciler import reconcile
from .record_builder import build_records

"""Import session: owner of the editable working set.

The working set is only replaced between pipeline phases. ``submit`` takes an
immutable snapshot (a tuple of frozen DraftRecords) before partitioning, and
installs the reconciled failures as the new working set once every batch has
settled. Resubmission is always an explicit call to ``submit`` again.
"""

__all__ = [
    "ValidationError",
    "SubmissionBlockedError",
    "ImportSession",
    "EMAIL_REQUIRED",
    "INVALID_ROLE",
]

logger = logging.getLogger(__name__)

EMAIL_REQUIRED = "email required"
INVALID_ROLE = "invalid role"


class ValidationError(Exception):
    """Raised when the working set cannot be submitted at all."""


class SubmissionBlockedError(ValidationError):
    """Raised when some rows fail pre-submission validation."""

    def __init__(self, issues: dict[int, list[str]]) -> None:
        self.issues = issues
        super().__init__(f"{len(issues)} row(s) failed validation")


class ImportSession:
    def __init__(
        self,
        api: ApiConfig,
        *,
        company_id: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        aliases: dict[LogicalField, tuple[str, ...]] | None = None,
        error_log: ErrorLogBuffer | None = None,
        source_name: str = "",
    ) -> None:
        self.api = api
        self.company_id = company_id
        self.batch_size = batch_size
        self.mapping_session = MappingSession(aliases or DEFAULT_ALIASES)
        self.error_log = error_log
        self.source_name = source_name
        self._working_set: list[DraftRecord] = []
        self.last_result: SubmissionResult | None = None
        self.last_reconciliation: Reconciliation | None = None

    @property
    def working_set(self) -> tuple[DraftRecord, ...]:
        return tuple(self._working_set)

    @property
    def mapping_state(self) -> MappingState:
        return self.mapping_session.state

    # -- mapping phase ---------------------------------------------------

    def begin_mapping(self, text: str, source_name: str | None = None) -> HeaderMapping:
        if source_name is not None:
            self.source_name = source_name
        return self.mapping_session.load(text)

    def override_mapping(self, field: LogicalField | str, column: str | None) -> None:
        self.mapping_session.override(field, column)

    def confirm_mapping(self) -> tuple[DraftRecord, ...]:
        """Confirm the open mapping and replace the working set with its rows."""
        mapping = self.mapping_session.confirm()
        text = self.mapping_session.source_text or ""
        self._working_set = build_records(text, mapping, company_id=self.company_id)
        self.last_result = None
        self.last_reconciliation = None
        logger.info(f"loaded {len(self._working_set)} rows from {self.source_name or 'upload'}")
        return self.working_set

    def cancel_mapping(self) -> None:
        self.mapping_session.cancel()

    # -- working-set edits -------------------------------------------------

    def update_record(self, index: int, **changes: object) -> DraftRecord:
        """Edit one row. The row's error annotation is cleared."""
        record = self._working_set[index].with_changes(**changes)
        self._working_set[index] = record
        return record

    def remove_record(self, index: int) -> DraftRecord:
        return self._working_set.pop(index)

    def clear(self) -> None:
        self._working_set = []
        self.last_result = None
        self.last_reconciliation = None

    # -- submission ------------------------------------------------------

    def validate(self) -> dict[int, list[str]]:
        """Per-row issues keyed by working-set index (empty when submittable)."""
        issues: dict[int, list[str]] = {}
        for pos, record in enumerate(self._working_set):
            problems: list[str] = []
            if not record.email.strip():
                problems.append(EMAIL_REQUIRED)
            if record.role not in VALID_ROLES:
                problems.append(INVALID_ROLE)
            if problems:
                issues[pos] = problems
        return issues

    def submit(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> Reconciliation:
        """Validate, submit the snapshot and keep only the failed rows.

        Raises:
            ValidationError: empty working set or no company scope
            SubmissionBlockedError: rows failed validation; they are annotated
                in place and nothing is sent
        """
        if not self._working_set:
            raise ValidationError("nothing to submit")
        if self.company_id is None:
            raise ValidationError("no company selected for upload")

        issues = self.validate()
        if issues:
            for pos, problems in issues.items():
                self._working_set[pos] = self._working_set[pos].with_changes(errors=tuple(problems))
            if self.error_log is not None:
                self.error_log.append_validation_issues(
                    self.source_name, issues, (r.email for r in self._working_set)
                )
            raise SubmissionBlockedError(issues)

        # スナップショット: 送信中の編集は次回の送信に反映される
        snapshot = tuple(r.with_changes(company_id=self.company_id) for r in self._working_set)
        result = submit_records(
            snapshot,
            self.api,
            self.batch_size,
            transport=transport,
            metrics_callback=metrics_callback,
        )
        reconciliation = reconcile(snapshot, result)

        self._working_set = list(reconciliation.working_set)
        self.last_result = result
        self.last_reconciliation = reconciliation
        if self.error_log is not None:
            self.error_log.append_reconciliation(self.source_name, reconciliation)
        logger.info(reconciliation.summary)
        return reconciliation
