"""
Configuration management using Pydantic settings.

All configuration values are loaded from environment variables or .env file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Session API Configuration
    session_api_base_url: str = "http://localhost:5000/api"
    session_api_timeout: int = 30
    session_api_verify_ssl: bool = True
    session_api_max_retries: int = 2
    session_api_retry_delay: float = 0.5  # Seconds, doubled on each retry

    # Trading Session
    default_session_duration_ms: int = 1_800_000  # Used when the duration lookup fails
    session_warning_seconds: int = 60
    countdown_interval_seconds: float = 1.0
    qr_poll_interval_ms: int = 1000
    session_note_hidden_days: int = 30

    # Confirmation
    tfa_confirm_on_unparseable_error: bool = True

    # Persisted confirmation identifier (written by the sign-in flow)
    token_storage_path: str = ".trading_session/token.json"
    token_storage_key: str = "sessionToken"

    # Server Configuration
    port: int = 8080
    host: str = "127.0.0.1"
    reload: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance loaded from environment.

    Note:
        Uses lru_cache to ensure settings are loaded only once.
        To reload settings (e.g., in tests), call get_settings.cache_clear()
    """
    return Settings()
