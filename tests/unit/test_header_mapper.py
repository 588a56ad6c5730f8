from __future__ import annotations

import pytest

from bulk_import.models.header_mapping import LogicalField, MappingState
from bulk_import.services.header_mapper import (
    DEFAULT_ALIASES,
    MappingError,
    MappingSession,
    MappingStateError,
    merge_aliases,
    propose_mapping,
)


def test_propose_mapping_matches_aliases_case_insensitively():
    mapping = propose_mapping(["FULL NAME", " E-mail ", "Type", "Dept", "Cell"])
    assert mapping.as_dict() == {
        "name": "FULL NAME",
        "email": " E-mail ",
        "role": "Type",
        "department": "Dept",
        "phone": "Cell",
    }


def test_propose_mapping_leaves_unknown_fields_unset():
    mapping = propose_mapping(["mail", "whatever"])
    assert mapping.get(LogicalField.EMAIL) == "mail"
    assert mapping.get("role") is None
    assert mapping.missing_mandatory == [LogicalField.ROLE]


def test_propose_mapping_first_matching_header_wins():
    mapping = propose_mapping(["Email", "Mail", "role"])
    assert mapping.get("email") == "Email"


def test_merge_aliases_extends_defaults():
    aliases = merge_aliases({"department": ["Team", "dept"], "email": ["Login"]})
    assert aliases[LogicalField.DEPARTMENT] == DEFAULT_ALIASES[LogicalField.DEPARTMENT] + ("team",)
    assert "login" in aliases[LogicalField.EMAIL]
    mapping = propose_mapping(["login", "Team", "role"], aliases)
    assert mapping.get("email") == "login"
    assert mapping.get("department") == "Team"


def test_merge_aliases_rejects_unknown_field():
    with pytest.raises(ValueError):
        merge_aliases({"salary": ["pay"]})


def test_session_lifecycle_load_override_confirm():
    session = MappingSession()
    assert session.state is MappingState.IDLE
    mapping = session.load("Address,Kind,Who\nx@y.z,admin,X\n")
    assert session.state is MappingState.MAPPING_OPEN
    assert session.headers == ["Address", "Kind", "Who"]
    assert mapping.get("email") is None

    session.override("email", "Address")
    session.override(LogicalField.ROLE, "Kind")
    session.override("name", "Who")
    confirmed = session.confirm()
    assert session.state is MappingState.MAPPING_CONFIRMED
    assert confirmed.as_dict()["email"] == "Address"


def test_override_to_none_ignores_column():
    session = MappingSession()
    session.load("email,role,name\n")
    session.override("name", "none")
    assert session.mapping.get("name") is None


def test_override_unknown_column_or_field_is_rejected():
    session = MappingSession()
    session.load("email,role\n")
    with pytest.raises(MappingError, match="not in header"):
        session.override("email", "Email Address")
    with pytest.raises(MappingError, match="unknown field"):
        session.override("salary", "email")


def test_confirm_requires_mandatory_fields():
    session = MappingSession()
    session.load("email,name\n")
    with pytest.raises(MappingError, match="role"):
        session.confirm()
    assert session.state is MappingState.MAPPING_OPEN


def test_cancel_returns_to_idle():
    session = MappingSession()
    session.load("email,role\n")
    session.cancel()
    assert session.state is MappingState.IDLE
    assert session.mapping is None
    with pytest.raises(MappingStateError):
        session.confirm()


def test_load_while_open_is_rejected():
    session = MappingSession()
    session.load("email,role\n")
    with pytest.raises(MappingStateError):
        session.load("email,role\n")


def test_open_state_without_mapping_is_rejected():
    # 状態と mapping が食い違っても MappingStateError で止める
    session = MappingSession()
    session.state = MappingState.MAPPING_OPEN
    with pytest.raises(MappingStateError, match="no mapping is open"):
        session.override("email", None)
    with pytest.raises(MappingStateError, match="no mapping is open"):
        session.confirm()
