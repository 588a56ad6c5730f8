from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the bulk user import tool.

The loader in bulk_import/config/loader.py builds these from YAML; the
pipeline only ever sees the typed values.
"""

DEFAULT_ENDPOINT = "/api/users/bulk-upsert"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_BATCH_SIZE = 50
MAX_BATCH_SIZE = 50


@dataclass(frozen=True)
class ApiConfig:
    """Upsert backend connection settings.

    Environment variables (BULK_IMPORT_BASE_URL / BULK_IMPORT_API_TOKEN)
    take precedence over file values.
    """
    base_url: str
    endpoint: str = DEFAULT_ENDPOINT
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    token: str | None = None  # Bearer token; never read from the YAML file


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import run."""
    api: ApiConfig
    batch_size: int = DEFAULT_BATCH_SIZE  # clamped to [1, MAX_BATCH_SIZE] at partition time
    company_id: int | None = None  # tenant scope stamped on every record
    aliases: dict[str, list[str]] = field(default_factory=dict)  # extra header aliases per field
    error_log_dir: str = "./logs"
