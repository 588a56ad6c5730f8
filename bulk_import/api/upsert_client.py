from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..models.config_models import ApiConfig
from ..models.submission import SubmissionBatch

"""HTTP client for the bulk user upsert endpoint.

One POST per batch:

    POST {base_url}{endpoint}   {"users": [ {email, name, role, department, phone, company_id}, ... ]}

Expected response body:

    {"status": true, "message": "...", "data": {"created": [...], "updated": [...],
     "existing": [...], "failed": [...]}}

Items may carry a batch-local ``index``. Any request-level problem (transport
error, timeout, non-2xx, unreadable body, ``status: false``) is raised as
UpsertRequestError; the orchestrator turns it into per-row failures.
"""

__all__ = [
    "UpsertRequestError",
    "BatchMetrics",
    "BatchResponse",
    "parse_response_body",
    "UpsertClient",
]

RESULT_KEYS = ("created", "updated", "existing", "failed")


class UpsertRequestError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single upsert request."""
    batch_number: int
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float
    ok: bool


@dataclass(frozen=True)
class BatchResponse:
    """Raw per-category items as returned by the backend (batch-local)."""
    created: list[dict[str, Any]] = field(default_factory=list)
    updated: list[dict[str, Any]] = field(default_factory=list)
    existing: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"HTTP {response.status_code}: {body['message']}"
    return f"HTTP {response.status_code}"


def parse_response_body(body: Any) -> BatchResponse:
    if not isinstance(body, dict):
        raise UpsertRequestError("unexpected response body")
    if body.get("status") is False:
        raise UpsertRequestError(body.get("message") or "REQUEST_FAILED")
    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise UpsertRequestError("unexpected response body")
    lists: dict[str, list[dict[str, Any]]] = {}
    for key in RESULT_KEYS:
        items = data.get(key)
        # 配列以外は空扱い
        lists[key] = [it for it in items if isinstance(it, dict)] if isinstance(items, list) else []
    return BatchResponse(message=body.get("message"), **lists)


class UpsertClient:
    """Async upsert client. Use as ``async with UpsertClient(api) as client``.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    ``metrics_callback`` receives a BatchMetrics for every request, failed
    requests included.
    """

    def __init__(
        self,
        api: ApiConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self.api = api
        self.metrics_callback = metrics_callback
        headers = {"Accept": "application/json"}
        if api.token:
            headers["Authorization"] = f"Bearer {api.token}"
        self._http = httpx.AsyncClient(
            base_url=api.base_url,
            timeout=api.timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> UpsertClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def post_batch(self, batch: SubmissionBatch) -> BatchResponse:
        payload = {"users": [r.to_payload() for r in batch.records]}
        start_time = time.time()
        ok = False
        try:
            try:
                response = await self._http.post(self.api.endpoint, json=payload)
            except httpx.TimeoutException as e:
                raise UpsertRequestError(f"request timed out: {e}") from e
            except httpx.RequestError as e:
                raise UpsertRequestError(f"request failed: {e}") from e

            if not response.is_success:
                raise UpsertRequestError(_error_message(response))
            try:
                body = response.json()
            except ValueError as e:
                raise UpsertRequestError(f"invalid JSON response: {e}") from e
            result = parse_response_body(body)
            ok = True
            return result
        finally:
            end_time = time.time()
            if self.metrics_callback is not None:
                self.metrics_callback(
                    BatchMetrics(
                        batch_number=batch.number,
                        batch_size=len(batch),
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                        ok=ok,
                    )
                )
