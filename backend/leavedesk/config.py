from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEAVEDESK_",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Desk"
    app_version: str = "0.1.0"
    debug: bool = False
    seed_demo_data: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    database_url: str = "postgresql+asyncpg://leavedesk:leavedesk@db:5432/leavedesk"
    store_timeout_seconds: float = 10.0
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    session_ttl_minutes: int = 60

    # Leave policy switches.
    allow_manager_self_submit: bool = False
    enforce_date_span: bool = False
    atomic_decisions: bool = True
    debit_retry_attempts: int = 3


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings | None) -> None:
    """Replace the cached settings (tests and embedding callers)."""
    global _settings
    _settings = settings
