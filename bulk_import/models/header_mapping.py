from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Header mapping domain models for the bulk user import pipeline.

HeaderMapping binds each logical user field to at most one source column of
the uploaded CSV. MappingState tracks the operator-facing mapping lifecycle:

    idle → headers-extracted → mapping-open → mapping-confirmed

Cancelling from any state returns to idle.
"""

__all__ = [
    "LogicalField",
    "MANDATORY_FIELDS",
    "MappingState",
    "HeaderMapping",
]


class LogicalField(Enum):
    """Target fields a source column can be mapped onto."""
    NAME = "name"
    EMAIL = "email"
    ROLE = "role"
    DEPARTMENT = "department"
    PHONE = "phone"

    @classmethod
    def parse(cls, value: str | LogicalField) -> LogicalField:
        if isinstance(value, LogicalField):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"unknown field: {value!r}") from None


MANDATORY_FIELDS = frozenset({LogicalField.EMAIL, LogicalField.ROLE})


class MappingState(Enum):
    """Mapping phase lifecycle.

    - IDLE: nothing loaded (initial state, and the state after cancel)
    - HEADERS_EXTRACTED: header row read from the source text
    - MAPPING_OPEN: default mapping proposed, operator may override
    - MAPPING_CONFIRMED: mapping accepted, records may be built
    """
    IDLE = "idle"
    HEADERS_EXTRACTED = "headers-extracted"
    MAPPING_OPEN = "mapping-open"
    MAPPING_CONFIRMED = "mapping-confirmed"


@dataclass
class HeaderMapping:
    """Logical field -> source column name (None = not mapped)."""
    columns: dict[LogicalField, str | None] = field(
        default_factory=lambda: {f: None for f in LogicalField}
    )

    def get(self, logical: LogicalField | str) -> str | None:
        return self.columns.get(LogicalField.parse(logical))

    def set(self, logical: LogicalField | str, column: str | None) -> None:
        self.columns[LogicalField.parse(logical)] = column or None

    @property
    def missing_mandatory(self) -> list[LogicalField]:
        return [f for f in LogicalField if f in MANDATORY_FIELDS and not self.columns.get(f)]

    def resolve_indices(self, headers: list[str]) -> dict[LogicalField, int]:
        """Translate column names to header positions.

        The first header cell equal to the mapped name wins. Unmapped fields
        and names not present in ``headers`` resolve to -1.
        """
        out: dict[LogicalField, int] = {}
        for logical in LogicalField:
            name = self.columns.get(logical)
            out[logical] = headers.index(name) if name and name in headers else -1
        return out

    def as_dict(self) -> dict[str, str | None]:
        return {f.value: self.columns.get(f) for f in LogicalField}
