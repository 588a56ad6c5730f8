from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

"""DraftRecord model for the bulk user import pipeline.

A DraftRecord is one parsed, not-yet-confirmed user row waiting for submission.
Records are immutable values: editing a row in the working set replaces it with
a new DraftRecord (see ``with_changes``), so a submission snapshot taken as a
tuple can never be mutated behind the orchestrator's back.
"""

__all__ = [
    "DraftRecord",
    "Role",
    "DEFAULT_ROLE",
    "VALID_ROLES",
    "normalize_role",
]


class Role(Enum):
    """Roles accepted by the upsert backend."""
    SUPERUSER = "superuser"
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    USER = "user"


DEFAULT_ROLE = Role.USER.value
VALID_ROLES = frozenset(r.value for r in Role)


def normalize_role(raw: str | None) -> str:
    """Lower-case and validate a role value, falling back to ``user``."""
    if raw is None:
        return DEFAULT_ROLE
    value = raw.strip().lower()
    return value if value in VALID_ROLES else DEFAULT_ROLE


@dataclass(frozen=True)
class DraftRecord:
    """Candidate user row built from a mapped CSV row.

    ``source_row`` is the 1-based file line the row starts on (the header
    starts on line 1; quoted newlines in earlier rows are counted). ``original_index`` is the position the record had in the
    working set it was last submitted from; it is stamped by reconciliation.
    """
    email: str
    role: str = DEFAULT_ROLE
    name: str | None = None
    department: str | None = None
    phone: str | None = None
    company_id: int | None = None
    source_row: int | None = None
    original_index: int | None = None
    errors: tuple[str, ...] = field(default=())

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def with_changes(self, **changes: Any) -> DraftRecord:
        """Return an edited copy. Editing a row clears its error annotation."""
        if "errors" not in changes:
            changes["errors"] = ()
        return replace(self, **changes)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the backend upsert item shape."""
        return {
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "department": self.department,
            "phone": self.phone,
            "company_id": self.company_id,
        }
