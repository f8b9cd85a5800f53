"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables with CHAINPULSE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="CHAINPULSE_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3001
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Webhook ---
    webhook_secret: str = "chainpulse-secret"
    payload_preview_chars: int = 2000

    # --- Query API ---
    activity_limit_default: int = 100
    user_activity_limit_default: int = 50
    leaderboard_limit_default: int = 100
    query_limit_max: int = 1000

    # --- Redis relay (empty URL disables it) ---
    redis_url: str = ""
    redis_channel_prefix: str = "chainpulse"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
