from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for row failure logging.

Every row that fails validation or submission is written as one JSON Lines
record. ``row`` is the working-set index of the failed record; -1 is used
when a backend failure could not be correlated to any submitted row.
"""

__all__ = [
    "ErrorRecord",
    "UNKNOWN_ROW",
]

UNKNOWN_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source CSV filename
        row: working-set index, -1 when unknown
        email: email of the failed row (empty when unknown)
        error_type: VALIDATION_ERROR / ROW_REJECTED / TRANSPORT_ERROR / UNMATCHED_FAILURE
        message: error text as reported, multiple errors joined with "; "
    """
    timestamp: str
    file: str
    row: int
    email: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, row: int, email: str | None, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            email=email or "",
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
