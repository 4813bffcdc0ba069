from __future__ import annotations

import json
from pathlib import Path

import httpx
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_FILE = BASE_DIR.parent / "configs" / "config.json"


class ConfigError(Exception):
    """Configuration could not be read or is invalid."""


class Settings(BaseSettings):
    # --- sampling ---
    collection_interval: int = Field(default=10, gt=0)  # seconds between samples

    # --- endpoint ---
    endpoint: str = "https://localhost:8080/telemetry"
    request_timeout: float = Field(default=10.0, gt=0)

    # --- retry policy ---
    max_attempts: int = Field(default=3, ge=1)
    retry_backoff: float = Field(default=5.0, ge=0)  # fixed delay between attempts

    # --- delivery ---
    spool_max_size: int | None = Field(default=10_000, gt=0)  # None = unbounded
    max_in_flight: int = Field(default=16, ge=1)

    # --- transport security ---
    ca_cert_file: str | None = None
    cert_file: str | None = None
    key_file: str | None = None

    # --- logging ---
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "TELEMETRY_"}

    @field_validator("endpoint")
    @classmethod
    def _http_endpoint(cls, value: str) -> str:
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"invalid endpoint URL: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("endpoint must be an http or https URL with a host")
        return value


def load_settings(path: str | Path | None = None) -> Settings:
    """Read the JSON config document and layer it over the environment."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
    try:
        raw = json.loads(config_path.read_text())
    except OSError as exc:
        raise ConfigError(f"read file {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"parse JSON {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: top-level JSON value must be an object")

    try:
        return Settings(**raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {config_path}: {exc}") from exc
