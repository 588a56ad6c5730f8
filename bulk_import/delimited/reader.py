from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from ..models.draft_record import DraftRecord
from .tokenizer import extract_header, is_blank_row, tokenize

"""Source file access and tabular helpers built on the tokenizer.

- read_source_text: UTF-8 decode of the uploaded file (BOM stripped)
- rows_to_frame: ragged tokenized rows -> positional DataFrame
- records_to_csv: working set -> quoted CSV the tokenizer reads back
"""

__all__ = [
    "SourceReadError",
    "read_source_text",
    "rows_to_frame",
    "preview_frame",
    "records_to_csv",
    "EXPORT_COLUMNS",
]

EXPORT_COLUMNS = ["name", "email", "role", "department", "phone", "errors"]


class SourceReadError(Exception):
    """Raised when the source file cannot be read or decoded."""


def read_source_text(path: Path) -> str:
    if not path.exists():
        raise SourceReadError(f"file not found: {path}")
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise SourceReadError(f"cannot read {path}: {e}") from e
    try:
        # utf-8-sig は先頭 BOM を除去する
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise SourceReadError(f"{path.name} is not valid UTF-8: {e}") from e


def rows_to_frame(rows: Iterable[list[str]]) -> pd.DataFrame:
    """Build a DataFrame with positional integer columns.

    Short rows are padded with missing values, so a cell that is absent from
    the file and a cell that is present but empty stay distinguishable.
    Columns are positional because header names may repeat.
    """
    data = list(rows)
    if not data:
        return pd.DataFrame()
    return pd.DataFrame(data, dtype=object)


def preview_frame(text: str, limit: int = 5) -> tuple[list[str], pd.DataFrame]:
    """Header cells plus the first ``limit`` non-blank body rows."""
    rows = tokenize(text)
    headers = extract_header(text)
    body = [r for r in rows[1:] if not is_blank_row(r)][:limit]
    frame = rows_to_frame(body)
    if not frame.empty:
        labels = headers + [f"<col {i}>" for i in range(len(headers), frame.shape[1])]
        frame.columns = labels[: frame.shape[1]]
    return headers, frame


def records_to_csv(records: Iterable[DraftRecord], path: Path) -> Path:
    """Write records (with their error annotation) as fully quoted CSV."""
    frame = pd.DataFrame(
        [
            {
                "name": r.name or "",
                "email": r.email,
                "role": r.role,
                "department": r.department or "",
                "phone": r.phone or "",
                "errors": "; ".join(r.errors),
            }
            for r in records
        ],
        columns=EXPORT_COLUMNS,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False, quoting=csv.QUOTE_ALL, lineterminator="\n", encoding="utf-8")
    return path
