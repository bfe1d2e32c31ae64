"""
Settings module for FileVault.

Environment-based configuration with sensible defaults.
All settings can be overridden via environment variables prefixed with FILEVAULT_.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    In production, the session cookie should be marked secure.
    """

    # Environment
    app_name: str = Field(default="FileVault", description="Service name used in logs and docs")
    environment: str = Field(
        default="development",
        description="Environment name (development, staging, production)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path of a rotating log file"
    )

    # HTTP
    cors_allow_origins: List[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed to call the API with credentials"
    )
    static_dir: Optional[str] = Field(
        default=None,
        description="Directory of a prebuilt frontend bundle to serve at /"
    )

    # Sessions
    session_cookie_name: str = Field(default="filevault_sid", description="Session cookie name")
    session_ttl_days: int = Field(default=30, description="Session lifetime in days")
    session_cookie_secure: bool = Field(
        default=False,
        description="Mark the session cookie Secure (enable behind HTTPS)"
    )

    # Upload rate limiting
    upload_rate_limit: int = Field(default=10, description="Uploads allowed per window")
    upload_rate_window_seconds: int = Field(default=60, description="Fixed window length")
    rate_limit_cleanup_interval_seconds: int = Field(
        default=300,
        description="How often expired rate limit windows and login sessions are purged"
    )

    # Content sniffing
    content_sniff_bytes: int = Field(
        default=8192,
        description="Bytes read from a stored object to verify its signature"
    )

    model_config = SettingsConfigDict(
        env_prefix="FILEVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are cached for performance. To reload, use:
        get_settings.cache_clear()
    """
    return Settings()

