from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from bulk_import.cli.__main__ import main as cli_main
from bulk_import.logging.init import reset_logging

"""Error log JSON Lines contract: fixed keys, known error types, no extras."""

ERROR_LOG_SCHEMA = {
    "type": "object",
    "required": ["timestamp", "file", "row", "email", "error_type", "message"],
    "additionalProperties": False,
    "properties": {
        "timestamp": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$"},
        "file": {"type": "string"},
        "row": {"type": "integer", "minimum": -1},
        "email": {"type": "string"},
        "error_type": {
            "enum": ["VALIDATION_ERROR", "ROW_REJECTED", "TRANSPORT_ERROR", "UNMATCHED_FAILURE"]
        },
        "message": {"type": "string"},
    },
}


def _read_log_lines(workdir: Path) -> list[dict]:
    logs = sorted((workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    return [json.loads(line) for line in logs[0].read_text(encoding="utf-8").splitlines()]


def test_schema_accepts_example_and_rejects_extra_key():
    record = {
        "timestamp": "2024-05-01T10:12:33Z",
        "file": "users.csv",
        "row": 2,
        "email": "max@example.com",
        "error_type": "TRANSPORT_ERROR",
        "message": "HTTP 500: database unavailable",
    }
    jsonschema.validate(record, ERROR_LOG_SCHEMA)
    with pytest.raises(jsonschema.ValidationError):
        jsonschema.validate({**record, "company": "x"}, ERROR_LOG_SCHEMA)


def test_transport_failure_log_lines(temp_workdir: Path, write_config, users_csv_text, backend, monkeypatch, capsys):
    monkeypatch.setattr("bulk_import.cli.__main__._build_transport", lambda: backend.transport)
    backend.fail_on = {"max@example.com"}
    backend.fail_mode = "500"
    csv_path = temp_workdir / "data" / "users.csv"
    csv_path.write_text(users_csv_text, encoding="utf-8")
    reset_logging()

    assert cli_main([str(csv_path)]) == 2
    assert "INFO error log:" in capsys.readouterr().out

    lines = _read_log_lines(temp_workdir)
    for line in lines:
        jsonschema.validate(line, ERROR_LOG_SCHEMA)
    assert [(r["file"], r["row"], r["email"], r["error_type"], r["message"]) for r in lines] == [
        ("users.csv", 2, "MAX@example.com", "TRANSPORT_ERROR", "HTTP 500: database unavailable"),
    ]


def test_validation_failure_log_lines(temp_workdir: Path, write_config, backend, monkeypatch, capsys):
    monkeypatch.setattr("bulk_import.cli.__main__._build_transport", lambda: backend.transport)
    csv_path = temp_workdir / "data" / "users.csv"
    csv_path.write_text("email,role\na@x.com,user\n  ,admin\n", encoding="utf-8")
    reset_logging()

    assert cli_main([str(csv_path)]) == 1
    lines = _read_log_lines(temp_workdir)
    for line in lines:
        jsonschema.validate(line, ERROR_LOG_SCHEMA)
    assert [(r["row"], r["error_type"], r["message"]) for r in lines] == [(1, "VALIDATION_ERROR", "email required")]


def test_no_log_file_on_full_success(temp_workdir: Path, write_config, users_csv_text, backend, monkeypatch):
    monkeypatch.setattr("bulk_import.cli.__main__._build_transport", lambda: backend.transport)
    csv_path = temp_workdir / "data" / "users.csv"
    csv_path.write_text(users_csv_text, encoding="utf-8")
    reset_logging()

    assert cli_main([str(csv_path)]) == 0
    assert list((temp_workdir / "logs").glob("errors-*.log")) == []
