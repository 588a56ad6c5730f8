from __future__ import annotations

from ..models.submission import BatchStatsAccumulator, SubmissionResult

"""SUMMARY line rendering for a submission attempt.

Format:
SUMMARY rows={rows} batches={batches} created={c} updated={u} existing={e}
failed={f} failed_batches={fb} elapsed_sec={elapsed} p95_batch_sec={p95}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記を避ける
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return f"{value:.3f}".rstrip('0').rstrip('.')


def render_summary_line(result: SubmissionResult) -> str:
    """Render the SUMMARY line for ``result``.

    Examples:
        >>> render_summary_line(SubmissionResult(total_rows=0, total_batches=0))
        'SUMMARY rows=0 batches=0 created=0 updated=0 existing=0 failed=0 failed_batches=0 elapsed_sec=0 p95_batch_sec=0'
    """
    acc = BatchStatsAccumulator()
    for t in result.batch_times:
        acc.add_batch_time(t)
    _, _, p95 = acc.get_stats()
    counts = result.counts()
    return (
        f"SUMMARY rows={result.total_rows} "
        f"batches={result.total_batches} "
        f"created={counts['created']} "
        f"updated={counts['updated']} "
        f"existing={counts['existing']} "
        f"failed={counts['failed']} "
        f"failed_batches={result.failed_batches} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)} "
        f"p95_batch_sec={_format_seconds(p95)}"
    )
