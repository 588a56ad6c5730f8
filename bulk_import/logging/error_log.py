from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from bulk_import.models.error_record import UNKNOWN_ROW, ErrorRecord
from bulk_import.models.submission import FailureKind, Reconciliation

"""Row failure log: buffered JSON Lines, one file per run.

- fixed schema, no extra keys (see ErrorRecord)
- file `logs/errors-YYYYMMDD-HHMMSS.log` (UTC), created on first flush
- records are buffered and appended in one go on flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

ERROR_TYPES = {
    FailureKind.ROW: "ROW_REJECTED",
    FailureKind.TRANSPORT: "TRANSPORT_ERROR",
}


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    Not thread safe; only the pipeline's single thread of control appends.
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self.logs_dir = logs_dir or LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def append_validation_issues(self, file: str, issues: dict[int, list[str]], emails: Iterable[str]) -> None:
        email_list = list(emails)
        for row, errors in sorted(issues.items()):
            email = email_list[row] if row < len(email_list) else ""
            self.append(ErrorRecord.create(file, row, email, "VALIDATION_ERROR", "; ".join(errors)))

    def append_reconciliation(self, file: str, reconciliation: Reconciliation) -> None:
        """Log every failed row of a submission, unmatched failures with row -1."""
        unmatched_ids = {id(f) for f in reconciliation.unmatched}
        rows_by_email = {
            r.email.strip().lower(): r.original_index
            for r in reversed(reconciliation.working_set)
            if r.email and r.original_index is not None
        }
        for failure in reconciliation.failed:
            if id(failure) in unmatched_ids:
                continue
            if failure.index is not None:
                row = failure.index
            else:
                row = rows_by_email.get((failure.email or "").strip().lower(), UNKNOWN_ROW)
            self.append(
                ErrorRecord.create(file, row, failure.email, ERROR_TYPES[failure.kind], "; ".join(failure.errors))
            )
        for failure in reconciliation.unmatched:
            self.append(
                ErrorRecord.create(file, UNKNOWN_ROW, failure.email, "UNMATCHED_FAILURE", "; ".join(failure.errors))
            )

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path:
        if not self._records:
            return self.file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
