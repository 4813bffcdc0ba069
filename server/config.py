from __future__ import annotations

from pydantic_settings import BaseSettings


class ServerSettings(BaseSettings):
    # --- app ---
    app_name: str = "Telemetry Collector"

    # --- server ---
    host: str = "0.0.0.0"
    port: int = 8080
    recent_limit: int = 100  # snapshots kept for /api/recent

    model_config = {"env_file": ".env", "env_prefix": "TELEMETRY_SERVER_"}


settings = ServerSettings()
