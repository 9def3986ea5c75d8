"""
Centralized configuration for the Lifeline core.

All settings are loaded from environment variables with sensible defaults.
Subsystem settings are namespaced by prefix (SESSION_*, OTP_*, QUEUE_*).
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Lifeline Core"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Remote services
    auth_service_url: str = "http://localhost:5000"
    otp_service_url: str = "http://localhost:5000"
    sync_service_url: str = "http://localhost:5000"
    http_timeout_seconds: float = 30.0

    # Local persistence
    session_store_path: str = ".lifeline/session.json"
    notification_store_path: str = ".lifeline/notifications.json"
    notification_store_backend: str = "file"  # file | memory | supabase

    # Supabase (only used by the supabase notification store)
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Session
    session_cache_ttl_seconds: int = 300
    session_max_age_days: int = 30
    refresh_threshold_seconds: int = 900
    refresh_check_interval_seconds: int = 300

    # OTP
    otp_expiry_seconds: int = 300
    otp_max_attempts: int = 3
    otp_code_length: int = 6
    otp_close_delay_seconds: float = 1.5

    # Notification queue
    queue_sync_interval_seconds: int = 30
    queue_cleanup_interval_seconds: int = 3600
    queue_max_size: int = 500
    queue_max_age_days: int = 7
    queue_sync_batch_size: int = 50
    queue_retain_synced: bool = False


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
