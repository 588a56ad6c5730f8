# Shared pytest fixtures
from __future__ import annotations
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from bulk_import.models.config_models import ApiConfig


class FakeUpsertBackend:
    """In-memory stand-in for POST /api/users/bulk-upsert.

    - empty email -> failed ["email required"]
    - email already known -> existing (or updated when ``update_known``)
    - otherwise -> created
    - a batch containing an email from ``fail_on`` -> request-level failure
      (``fail_mode`` "connect" raises ConnectError, "500" answers HTTP 500)
    """

    def __init__(self) -> None:
        self.known: set[str] = set()
        self.fail_on: set[str] = set()
        self.fail_mode = "connect"
        self.update_known = False
        self.omit_failed_index = False
        self.requests: list[list[dict]] = []
        self.headers: list[httpx.Headers] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        users = json.loads(request.content)["users"]
        self.requests.append(users)
        self.headers.append(request.headers)
        emails = {(u.get("email") or "").lower() for u in users}
        if emails & self.fail_on:
            if self.fail_mode == "500":
                return httpx.Response(500, json={"status": False, "message": "database unavailable"})
            raise httpx.ConnectError("connection refused", request=request)

        data: dict[str, list[dict]] = {"created": [], "updated": [], "existing": [], "failed": []}
        for i, u in enumerate(users):
            email = (u.get("email") or "").strip()
            if not email:
                item = {"email": email, "errors": ["email required"]}
                if not self.omit_failed_index:
                    item["index"] = i
                data["failed"].append(item)
            elif email.lower() in self.known:
                key = "updated" if self.update_known else "existing"
                data[key].append({"email": email, "index": i})
            else:
                self.known.add(email.lower())
                data["created"].append({"email": email, "index": i, "id": len(self.known)})
        return httpx.Response(200, json={"status": True, "message": "ok", "data": data})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture()
def backend() -> FakeUpsertBackend:
    return FakeUpsertBackend()


@pytest.fixture()
def api_config() -> ApiConfig:
    return ApiConfig(base_url="https://api.example.test", token="test-token")


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        for var in ("BULK_IMPORT_BASE_URL", "BULK_IMPORT_API_TOKEN", "BULK_IMPORT_COMPANY_ID"):
            monkeypatch.delenv(var, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """api:
  base_url: https://api.example.test
  endpoint: /api/users/bulk-upsert
  timeout_seconds: 10
batch_size: 2
company_id: 7
aliases:
  department:
    - team
error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def users_csv_text() -> str:
    return (
        "Full Name,E-Mail,User Role,Dept,Mobile\r\n"
        '"Doe, Jane",jane@example.com,Admin,Safety,555-0100\r\n'
        "John Roe,john@example.com,supervisor,Ops,\r\n"
        "\r\n"
        '"Max ""Mo"" Power",MAX@example.com,pilot,"Ops\nNight shift",555-0199\r\n'
    )
