from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..models.config_models import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from ..models.draft_record import DraftRecord
from ..models.submission import SubmissionBatch

"""Batch partitioner.

Splits a working-set snapshot into contiguous batches. Each batch carries the
offset that maps its local row positions back to working-set indices:
``global = batch.offset + local``.
"""

__all__ = [
    "clamp_batch_size",
    "partition",
]


def clamp_batch_size(batch_size: Any) -> int:
    """Clamp to [1, MAX_BATCH_SIZE]; anything non-integral falls back to the default."""
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        return DEFAULT_BATCH_SIZE
    return max(1, min(batch_size, MAX_BATCH_SIZE))


def partition(records: Sequence[DraftRecord], batch_size: int = DEFAULT_BATCH_SIZE) -> list[SubmissionBatch]:
    size = clamp_batch_size(batch_size)
    snapshot = tuple(records)
    return [
        SubmissionBatch(number=n, offset=start, records=snapshot[start:start + size])
        for n, start in enumerate(range(0, len(snapshot), size))
    ]
