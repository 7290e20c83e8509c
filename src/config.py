"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Storage ---
    database_url: str | None = None  # enables the Postgres key-value store
    queue_storage_key: str = "offline_service_sync_queue"
    snapshot_storage_key: str = "offline_service_snapshot"

    # --- Remote API ---
    remote_api_base_url: str = "http://localhost:8001/api"
    remote_api_token: str = ""
    remote_health_path: str = "/health/"
    remote_timeout_seconds: float = 10.0
    network_probe_timeout_seconds: float = 4.0

    # --- Sync ---
    sync_batch_size: int = 50
    sync_power_saving_batch_size: int = 10
    low_battery_threshold: float = 0.2

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "DOSEKEEPER_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
