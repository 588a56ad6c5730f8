from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models.draft_record import DraftRecord
from ..models.submission import UNKNOWN_ERROR, Reconciliation, RowFailure, SubmissionResult

"""Reconciliation of a submission result against the submitted working set.

The next working set contains only the rows that failed, each annotated with
its errors and stamped with ``original_index``. Succeeded rows (created,
updated, existing) drop out, so a resubmission only ever touches failures.

Correlation:
1. failures with an ``index`` -> that position of the submitted set (ascending)
2. failures without one -> first unclaimed row with the same email (case-insensitive)
Several failures for the same row merge their errors.
"""

__all__ = [
    "reconcile",
]

logger = logging.getLogger(__name__)


def _find_by_email(working_set: Sequence[DraftRecord], email: str | None, claimed: dict[int, list[str]]) -> int | None:
    if not email:
        return None
    wanted = email.strip().lower()
    fallback: int | None = None
    for pos, record in enumerate(working_set):
        if record.email.strip().lower() != wanted:
            continue
        if pos not in claimed:
            return pos
        if fallback is None:
            fallback = pos
    # 同一メールが既に失敗行として確保済みならエラーを合流させる
    return fallback


def reconcile(working_set: Sequence[DraftRecord], result: SubmissionResult) -> Reconciliation:
    """Split ``result`` into summary lists and the next working set."""
    errors_by_pos: dict[int, list[str]] = {}
    unmatched: list[RowFailure] = []

    indexed = sorted(
        ((f.index, n, f) for n, f in enumerate(result.failed) if f.index is not None),
        key=lambda t: (t[0], t[1]),
    )
    for pos, _, failure in indexed:
        if 0 <= pos < len(working_set):
            errors_by_pos.setdefault(pos, []).extend(failure.errors or (UNKNOWN_ERROR,))
        else:
            unmatched.append(failure)

    by_email_order: list[int] = []
    for failure in result.failed:
        if failure.index is not None:
            continue
        pos = _find_by_email(working_set, failure.email, errors_by_pos)
        if pos is None:
            unmatched.append(failure)
            continue
        if pos not in errors_by_pos:
            by_email_order.append(pos)
        errors_by_pos.setdefault(pos, []).extend(failure.errors or (UNKNOWN_ERROR,))

    # index 由来の行を昇順で、その後にメール照合で見つかった行を並べる
    ordered = sorted(p for p in errors_by_pos if p not in by_email_order) + by_email_order
    next_set = tuple(
        working_set[pos].with_changes(original_index=pos, errors=tuple(errors_by_pos[pos]))
        for pos in ordered
    )

    for failure in unmatched:
        logger.warning(
            f"failure could not be matched to a submitted row "
            f"(email={failure.email!r}, index={failure.index}): {'; '.join(failure.errors)}"
        )

    return Reconciliation(
        created=tuple(result.created),
        updated=tuple(result.updated),
        existing=tuple(result.existing),
        failed=tuple(result.failed),
        working_set=next_set,
        unmatched=tuple(unmatched),
    )
