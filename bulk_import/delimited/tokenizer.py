from __future__ import annotations

"""Best-effort comma-delimited tokenizer.

Quoting rules:
- a double quote toggles in-quotes mode
- inside quotes, ``""`` is one literal quote; commas, CR and LF are content
- outside quotes, ``,`` ends a cell, ``\\n`` ends a row, a bare ``\\r`` is dropped

Malformed input never raises. An unterminated quote swallows the remainder of
the text into the current cell, since this feeds an ingestion tool rather
than a format validator.
"""

__all__ = [
    "tokenize",
    "tokenize_with_lines",
    "extract_header",
    "is_blank_row",
]

QUOTE = '"'
DELIMITER = ","


def tokenize(text: str) -> list[list[str]]:
    """Split ``text`` into rows of string cells.

    The last row is always emitted, so text ending in a newline produces a
    trailing ``[""]`` row. Callers drop it with ``is_blank_row``.
    """
    return [row for _, row in tokenize_with_lines(text)]


def tokenize_with_lines(text: str) -> list[tuple[int, list[str]]]:
    """Like ``tokenize``, paired with the 1-based file line each row starts on.

    Newlines inside quoted cells advance the line count, so a row that
    follows a multi-line cell still reports its real line.
    """
    rows: list[tuple[int, list[str]]] = []
    line = 1
    row_start = 1
    row: list[str] = []
    cell: list[str] = []
    in_quotes = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == QUOTE:
                if i + 1 < n and text[i + 1] == QUOTE:
                    cell.append(QUOTE)
                    i += 1
                else:
                    in_quotes = False
            else:
                cell.append(ch)
        elif ch == QUOTE:
            in_quotes = True
        elif ch == DELIMITER:
            row.append("".join(cell))
            cell = []
        elif ch == "\n":
            row.append("".join(cell))
            cell = []
            rows.append((row_start, row))
            row = []
            row_start = line + 1
        elif ch != "\r":
            cell.append(ch)
        if ch == "\n":
            line += 1
        i += 1

    row.append("".join(cell))
    rows.append((row_start, row))
    return rows


def extract_header(text: str) -> list[str]:
    """Return the trimmed cells of the first row (empty list for empty text)."""
    if not text:
        return []
    return [c.strip() for c in tokenize(text)[0]]


def is_blank_row(row: list[str]) -> bool:
    return all((c or "").strip() == "" for c in row)
