from __future__ import annotations

import logging
from collections.abc import Mapping

from ..delimited.tokenizer import extract_header
from ..models.header_mapping import HeaderMapping, LogicalField, MappingState

"""Header mapping service.

Proposes a default source-column -> logical-field mapping from header aliases
and drives the operator-facing mapping lifecycle. Confirmation is the only
way to obtain a mapping usable by the record builder.
"""

__all__ = [
    "DEFAULT_ALIASES",
    "MappingError",
    "MappingStateError",
    "MappingSession",
    "merge_aliases",
    "propose_mapping",
]

logger = logging.getLogger(__name__)

DEFAULT_ALIASES: dict[LogicalField, tuple[str, ...]] = {
    LogicalField.NAME: ("name", "full name", "fullname"),
    LogicalField.EMAIL: ("email", "e-mail", "mail"),
    LogicalField.ROLE: ("role", "user role", "type"),
    LogicalField.DEPARTMENT: ("department", "dept"),
    LogicalField.PHONE: ("phone", "phone number", "phonenumber", "mobile", "cell"),
}


class MappingError(Exception):
    """Raised when a mapping is incomplete or references unknown columns."""


class MappingStateError(Exception):
    """Raised on an operation not allowed in the current mapping state."""


def merge_aliases(extra: Mapping[str, list[str]] | None) -> dict[LogicalField, tuple[str, ...]]:
    """Extend DEFAULT_ALIASES with configured aliases (keys are field names)."""
    merged = dict(DEFAULT_ALIASES)
    for key, values in (extra or {}).items():
        logical = LogicalField.parse(key)
        added = tuple(v.strip().lower() for v in values if v and v.strip())
        merged[logical] = merged[logical] + tuple(a for a in added if a not in merged[logical])
    return merged


def propose_mapping(
    headers: list[str],
    aliases: Mapping[LogicalField, tuple[str, ...]] | None = None,
) -> HeaderMapping:
    """Guess a mapping by case-insensitive alias lookup.

    For each field the first header (left to right) that matches one of its
    aliases wins. Fields without a match stay unmapped.
    """
    aliases = aliases or DEFAULT_ALIASES
    normalized = [h.strip().lower() for h in headers]
    mapping = HeaderMapping()
    for logical in LogicalField:
        candidates = aliases.get(logical, ())
        for pos, header in enumerate(normalized):
            if header in candidates:
                mapping.set(logical, headers[pos])
                break
    return mapping


class MappingSession:
    """Operator-facing mapping lifecycle for one uploaded file.

    The session never touches the working set. A cancelled session leaves
    whatever was confirmed before exactly as it was.
    """

    def __init__(self, aliases: Mapping[LogicalField, tuple[str, ...]] | None = None) -> None:
        self.aliases = aliases or DEFAULT_ALIASES
        self.state = MappingState.IDLE
        self.headers: list[str] = []
        self.mapping: HeaderMapping | None = None
        self.source_text: str | None = None

    def load(self, text: str) -> HeaderMapping:
        """Extract headers, propose a mapping and open it for overrides."""
        if self.state is MappingState.MAPPING_OPEN:
            raise MappingStateError("a mapping is already open; confirm or cancel it first")
        self.source_text = text
        self.headers = extract_header(text)
        self.state = MappingState.HEADERS_EXTRACTED
        self.mapping = propose_mapping(self.headers, self.aliases)
        self.state = MappingState.MAPPING_OPEN
        logger.debug("proposed mapping %s for headers %s", self.mapping.as_dict(), self.headers)
        return self.mapping

    def override(self, field: LogicalField | str, column: str | None) -> None:
        """Point ``field`` at ``column``; None (or "none") ignores the field."""
        mapping = self._open_mapping()
        if isinstance(column, str) and column.strip().lower() in ("", "none"):
            column = None
        if column is not None and column not in self.headers:
            raise MappingError(f"column {column!r} not in header {self.headers}")
        try:
            mapping.set(field, column)
        except ValueError as e:
            raise MappingError(str(e)) from e

    def confirm(self) -> HeaderMapping:
        mapping = self._open_mapping()
        missing = mapping.missing_mandatory
        if missing:
            names = ", ".join(f.value for f in missing)
            raise MappingError(f"mandatory fields not mapped: {names}")
        self.state = MappingState.MAPPING_CONFIRMED
        return mapping

    def cancel(self) -> None:
        self.state = MappingState.IDLE
        self.headers = []
        self.mapping = None
        self.source_text = None

    def _open_mapping(self) -> HeaderMapping:
        self._require(MappingState.MAPPING_OPEN)
        if self.mapping is None:
            raise MappingStateError("no mapping is open")
        return self.mapping

    def _require(self, expected: MappingState) -> None:
        if self.state is not expected:
            raise MappingStateError(
                f"operation requires state {expected.value}, current state is {self.state.value}"
            )
