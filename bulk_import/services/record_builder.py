from __future__ import annotations

from typing import Any

import pandas as pd

from ..delimited.reader import rows_to_frame
from ..delimited.tokenizer import tokenize_with_lines
from ..models.draft_record import DraftRecord, normalize_role
from ..models.header_mapping import HeaderMapping, LogicalField

"""Record builder: confirmed mapping + source text -> DraftRecords.

Steps:
1. Tokenize the full text; row 0 is the header
2. Resolve every logical field to a column position (-1 when unmapped)
3. Skip rows whose cells are all empty after trimming
4. Trim values, normalize role, stamp the caller's company scope

Missing cells never raise. Hard validation (e.g. empty email) happens at the
submission gate.
"""

__all__ = [
    "build_records",
]


def _is_missing(val: Any) -> bool:
    return val is None or (not isinstance(val, str) and pd.isna(val))


def _cell(raw: pd.Series, idx: int) -> str | None:
    """Trimmed cell value. None when unmapped, "" when the row is too short."""
    if idx < 0:
        return None
    if idx >= len(raw):
        return ""
    val: Any = raw.iloc[idx]
    if _is_missing(val):
        return ""
    return str(val).strip()


def build_records(text: str, mapping: HeaderMapping, company_id: int | None = None) -> list[DraftRecord]:
    numbered = tokenize_with_lines(text)
    if len(numbered) <= 1:
        return []
    lines = [line for line, _ in numbered]
    rows = [row for _, row in numbered]
    headers = [c.strip() for c in rows[0]]
    indices = mapping.resolve_indices(headers)

    frame = rows_to_frame(rows[1:])
    records: list[DraftRecord] = []
    for pos, raw in frame.iterrows():
        # 全セル空 (欠損含む) の行はスキップ
        if all(_is_missing(v) or str(v).strip() == "" for v in raw.tolist()):
            continue
        email = _cell(raw, indices[LogicalField.EMAIL])
        name = _cell(raw, indices[LogicalField.NAME])
        department = _cell(raw, indices[LogicalField.DEPARTMENT])
        phone = _cell(raw, indices[LogicalField.PHONE])
        records.append(
            DraftRecord(
                email=email or "",
                role=normalize_role(_cell(raw, indices[LogicalField.ROLE])),
                # 未マッピング列は None、マッピング済みで空なら ""
                name=name,
                department=department,
                phone=phone,
                company_id=company_id,
                # 引用符内の改行を含めた実ファイル行番号
                source_row=lines[int(pos) + 1],
            )
        )
    return records
