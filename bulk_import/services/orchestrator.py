from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from ..api.upsert_client import BatchMetrics, BatchResponse, UpsertClient
from ..models.config_models import DEFAULT_BATCH_SIZE, ApiConfig
from ..models.draft_record import DraftRecord
from ..models.submission import (
    UNKNOWN_ERROR,
    FailureKind,
    RowFailure,
    RowOutcome,
    SubmissionBatch,
    SubmissionResult,
)
from .partitioner import partition
from .progress import ProgressTracker

"""Submission orchestration for the bulk user import pipeline.

All batch requests are started at once and joined with all-settle semantics
(``asyncio.gather(..., return_exceptions=True)``): one failing batch never
stops the others from completing or being counted.

- fulfilled batch: backend lists merged, indices shifted by ``batch.offset``
- rejected batch: every member becomes a transport RowFailure carrying the
  request error and its shifted index

The aggregate keeps batch order, then row order within a batch.
"""

__all__ = [
    "REQUEST_FAILED",
    "submit_batches",
    "submit_records",
    "merge_batch_response",
    "synthesize_batch_failure",
]

logger = logging.getLogger(__name__)

REQUEST_FAILED = "REQUEST_FAILED"


def _explicit_index(item: dict[str, Any], batch: SubmissionBatch) -> int | None:
    """Batch-local index sent by the backend, if usable."""
    idx = item.get("index")
    if isinstance(idx, bool) or not isinstance(idx, int):
        return None
    # 範囲外 index は他バッチの行を指してしまうため無視する
    if idx < 0 or idx >= len(batch):
        return None
    return idx


def _errors(item: dict[str, Any]) -> tuple[str, ...]:
    raw = item.get("errors")
    if isinstance(raw, str) and raw:
        return (raw,)
    if isinstance(raw, list) and raw:
        return tuple(str(e) for e in raw)
    single = item.get("error") or item.get("message")
    if single:
        return (str(single),)
    return (UNKNOWN_ERROR,)


def _match_email(batch: SubmissionBatch, email: Any, claimed: set[int]) -> int | None:
    """First unclaimed batch position whose email matches case-insensitively."""
    if not isinstance(email, str) or not email.strip():
        return None
    wanted = email.strip().lower()
    for pos, record in enumerate(batch.records):
        if pos not in claimed and record.email.strip().lower() == wanted:
            return pos
    return None


def merge_batch_response(result: SubmissionResult, batch: SubmissionBatch, response: BatchResponse) -> None:
    """Append one fulfilled batch's outcomes to ``result`` (working-set indices)."""
    for key in ("created", "updated", "existing"):
        target: list[RowOutcome] = getattr(result, key)
        for pos, item in enumerate(getattr(response, key)):
            local = _explicit_index(item, batch)
            if local is None:
                local = pos  # implicit position inside the sub-list
            target.append(
                RowOutcome(email=item.get("email"), index=batch.global_index(local), id=item.get("id"))
            )

    # 明示 index を先に確保し、email 照合は残りの行だけを対象にする
    resolved: list[int | None] = [_explicit_index(item, batch) for item in response.failed]
    claimed: set[int] = {local for local in resolved if local is not None}
    for n, item in enumerate(response.failed):
        if resolved[n] is not None:
            continue
        match = _match_email(batch, item.get("email"), claimed)
        if match is not None:
            claimed.add(match)
            resolved[n] = match

    for item, local in zip(response.failed, resolved, strict=True):
        email = item.get("email")
        if local is not None and not email:
            email = batch.records[local].email or None
        result.failed.append(
            RowFailure(
                email=email,
                errors=_errors(item),
                index=batch.global_index(local) if local is not None else None,
                kind=FailureKind.ROW,
            )
        )


def synthesize_batch_failure(result: SubmissionResult, batch: SubmissionBatch, error: BaseException) -> None:
    """Degrade a failed request into one RowFailure per batch member."""
    message = str(error) or REQUEST_FAILED
    for pos, record in enumerate(batch.records):
        result.failed.append(
            RowFailure(
                email=record.email or None,
                errors=(message,),
                index=batch.global_index(pos),
                kind=FailureKind.TRANSPORT,
            )
        )


async def _post(client: UpsertClient, batch: SubmissionBatch, progress: ProgressTracker | None) -> BatchResponse:
    ok = False
    try:
        response = await client.post_batch(batch)
        ok = True
        return response
    finally:
        if progress is not None:
            progress.batch_settled(success=ok)


async def submit_batches(
    batches: Sequence[SubmissionBatch],
    client: UpsertClient,
    progress: ProgressTracker | None = None,
) -> SubmissionResult:
    """Fan out one request per batch and aggregate every outcome."""
    result = SubmissionResult(
        total_rows=sum(len(b) for b in batches),
        total_batches=len(batches),
        start_time=datetime.now(UTC),
    )
    if not batches:
        result.end_time = datetime.now(UTC)
        return result

    logger.debug(f"submitting {result.total_rows} rows in {len(batches)} batches")
    settled = await asyncio.gather(
        *(_post(client, batch, progress) for batch in batches),
        return_exceptions=True,
    )

    for batch, outcome in zip(batches, settled, strict=True):
        if isinstance(outcome, BaseException):
            result.failed_batches += 1
            logger.warning(
                f"batch {batch.number + 1}/{len(batches)} failed "
                f"(rows {batch.offset}-{batch.offset + len(batch) - 1}): {outcome}"
            )
            synthesize_batch_failure(result, batch, outcome)
        else:
            merge_batch_response(result, batch, outcome)

    result.end_time = datetime.now(UTC)
    return result


def submit_records(
    records: Sequence[DraftRecord],
    api: ApiConfig,
    batch_size: int = DEFAULT_BATCH_SIZE,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> SubmissionResult:
    """Synchronous entry point: partition ``records`` and submit every batch.

    ``records`` is snapshotted into immutable batches before any request is
    made. Must not be called from inside a running event loop.
    """
    batches = partition(records, batch_size)
    batch_times: list[float] = []

    def _on_metrics(metrics: BatchMetrics) -> None:
        batch_times.append(metrics.elapsed_seconds)
        if metrics_callback is not None:
            metrics_callback(metrics)

    async def _run() -> SubmissionResult:
        async with UpsertClient(api, transport=transport, metrics_callback=_on_metrics) as client:
            with ProgressTracker(len(batches)) as progress:
                return await submit_batches(batches, client, progress)

    result = asyncio.run(_run())
    result.batch_times = batch_times
    return result
