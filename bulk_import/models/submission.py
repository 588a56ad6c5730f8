from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .draft_record import DraftRecord

"""Submission and result models for the bulk user import pipeline.

SubmissionBatch is the unit sent to the upsert backend. Every index carried
by RowOutcome / RowFailure is a working-set index, i.e. the batch-local
position already shifted by the batch ``offset``.
"""

__all__ = [
    "SubmissionBatch",
    "RowOutcome",
    "FailureKind",
    "RowFailure",
    "SubmissionResult",
    "Reconciliation",
    "BatchStatsAccumulator",
    "UNKNOWN_ERROR",
]

UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class SubmissionBatch:
    """Contiguous slice of the working-set snapshot."""
    number: int  # 0-based batch ordinal
    offset: int  # size sum of all preceding batches
    records: tuple[DraftRecord, ...]

    def __len__(self) -> int:
        return len(self.records)

    def global_index(self, local_index: int) -> int:
        return self.offset + local_index


@dataclass(frozen=True)
class RowOutcome:
    """A row the backend created, updated or found already existing."""
    email: str | None
    index: int
    id: str | int | None = None


class FailureKind(Enum):
    """Where a row failure came from.

    - ROW: reported by the backend for an otherwise successful request
    - TRANSPORT: synthesized because the whole batch request failed
    """
    ROW = "row"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class RowFailure:
    email: str | None
    errors: tuple[str, ...]
    index: int | None = None  # None: backend could not correlate, match by email
    kind: FailureKind = FailureKind.ROW


@dataclass
class SubmissionResult:
    """Union of all per-batch outcomes, in batch order then row order."""
    created: list[RowOutcome] = field(default_factory=list)
    updated: list[RowOutcome] = field(default_factory=list)
    existing: list[RowOutcome] = field(default_factory=list)
    failed: list[RowFailure] = field(default_factory=list)
    total_rows: int = 0
    total_batches: int = 0
    failed_batches: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None
    batch_times: list[float] = field(default_factory=list)

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def succeeded_count(self) -> int:
        return len(self.created) + len(self.updated) + len(self.existing)

    def counts(self) -> dict[str, int]:
        return {
            "created": len(self.created),
            "updated": len(self.updated),
            "existing": len(self.existing),
            "failed": len(self.failed),
        }


@dataclass(frozen=True)
class Reconciliation:
    """Display-ready outcome of one submission plus the next working set."""
    created: tuple[RowOutcome, ...]
    updated: tuple[RowOutcome, ...]
    existing: tuple[RowOutcome, ...]
    failed: tuple[RowFailure, ...]
    working_set: tuple[DraftRecord, ...]  # failed rows only, annotated
    unmatched: tuple[RowFailure, ...] = ()  # failures no submitted row matched

    @property
    def summary(self) -> str:
        return (
            f"Created {len(self.created)}, Updated {len(self.updated)}, "
            f"Existing {len(self.existing)}, Failed {len(self.failed)}"
        )


class BatchStatsAccumulator:
    """Accumulates per-request timings for the SUMMARY line."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 20 分位の 19 番目 = p95
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
