from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ENDPOINT,
    DEFAULT_TIMEOUT_SECONDS,
    ApiConfig,
    ImportConfig,
)

"""Config loader.

Responsibilities:
- Load YAML (config/import.yml by default)
- Validate against config_schema.json (shipped next to this module)
- Apply defaults and environment overrides

Environment variables win over the file so secrets stay out of YAML:
BULK_IMPORT_BASE_URL, BULK_IMPORT_API_TOKEN, BULK_IMPORT_COMPANY_ID.
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")

ENV_BASE_URL = "BULK_IMPORT_BASE_URL"
ENV_API_TOKEN = "BULK_IMPORT_API_TOKEN"
ENV_COMPANY_ID = "BULK_IMPORT_COMPANY_ID"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _env_company_id() -> int | None:
    raw = os.getenv(ENV_COMPANY_ID)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{ENV_COMPANY_ID} must be an integer, got {raw!r}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    # env の base_url は必須キー検証の前に反映する
    api_raw = dict(data.get("api") or {})
    if os.getenv(ENV_BASE_URL):
        api_raw["base_url"] = os.environ[ENV_BASE_URL]
        data = {**data, "api": api_raw}

    _validate_config_schema(data)

    api = ApiConfig(
        base_url=api_raw["base_url"],
        endpoint=api_raw.get("endpoint", DEFAULT_ENDPOINT),
        timeout_seconds=float(api_raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
        token=os.getenv(ENV_API_TOKEN) or None,
    )
    company_id = _env_company_id()
    if company_id is None:
        company_id = data.get("company_id")
    return ImportConfig(
        api=api,
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        company_id=company_id,
        aliases=data.get("aliases") or {},
        error_log_dir=data.get("error_log_dir", "./logs"),
    )
