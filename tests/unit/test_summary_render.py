from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from bulk_import.models.submission import (
    BatchStatsAccumulator,
    RowFailure,
    RowOutcome,
    SubmissionResult,
)
from bulk_import.services.summary import render_summary_line

SUMMARY_RE = re.compile(
    r"^SUMMARY rows=\d+ batches=\d+ created=\d+ updated=\d+ existing=\d+ failed=\d+ "
    r"failed_batches=\d+ elapsed_sec=[0-9.]+ p95_batch_sec=[0-9.]+$"
)


def test_render_summary_line_counts_and_format():
    start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)
    result = SubmissionResult(
        created=[RowOutcome(email="a@x", index=0)],
        updated=[RowOutcome(email="b@x", index=1)],
        existing=[],
        failed=[RowFailure(email="", errors=("email required",), index=2)],
        total_rows=3,
        total_batches=2,
        failed_batches=0,
        start_time=start,
        end_time=start + timedelta(seconds=2),
        batch_times=[0.5, 1.25],
    )
    line = render_summary_line(result)
    assert SUMMARY_RE.match(line)
    assert "rows=3 batches=2 created=1 updated=1 existing=0 failed=1 failed_batches=0" in line
    assert "elapsed_sec=2 " in line


def test_render_summary_line_empty_result():
    line = render_summary_line(SubmissionResult())
    assert line.endswith("elapsed_sec=0 p95_batch_sec=0")
    assert SUMMARY_RE.match(line)


def test_small_elapsed_avoids_scientific_notation():
    start = datetime(2024, 1, 1, tzinfo=UTC)
    result = SubmissionResult(start_time=start, end_time=start + timedelta(microseconds=50))
    line = render_summary_line(result)
    assert "e-" not in line
    assert "elapsed_sec=0.00005" in line


def test_batch_stats_accumulator():
    acc = BatchStatsAccumulator()
    assert acc.get_stats() == (0, 0.0, 0.0)
    acc.add_batch_time(0.4)
    assert acc.get_stats() == (1, 0.4, 0.4)
    for t in (0.1, 0.2, 0.3):
        acc.add_batch_time(t)
    total, avg, p95 = acc.get_stats()
    assert total == 4
    assert abs(avg - 0.25) < 1e-9
    assert 0.3 <= p95 <= 0.4
