"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the Impact Assessment Portal."""

    # Application
    app_name: str = "Impact Assessment Portal"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    log_level: str = "INFO"
    log_format: str = "json"

    # API
    allowed_origins: str = "http://localhost:5173"
    rate_limit_default: str = "100/minute"
    public_base_url: str = "http://localhost:5173"

    # Security
    secret_key: str = "change-me-in-production-please"
    access_token_expire_minutes: int = 60
    password_min_length: int = 8

    # Attachments
    attachments_bucket: str = "attachments"
    max_attachment_count: int = 5
    max_attachment_bytes: int = 10 * 1024 * 1024
    max_total_attachment_bytes: int = 50 * 1024 * 1024

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",")]

    model_config = {"env_prefix": "IMPACT_", "env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
