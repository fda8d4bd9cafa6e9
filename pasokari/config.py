"""
Configuration and settings for the Pasokari backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5001)
    log_level: str = Field(default="INFO")

    # Requests above this size are rejected before routing.
    max_body_bytes: int = Field(default=10 * 1024 * 1024)

    # Document store (MongoDB preferred, any SQLAlchemy URL as fallback)
    mongo_uri: Optional[str] = Field(default=None)
    mongo_db_name: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)
    store_timeout_ms: int = Field(default=5000)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Mail transport; None picks one from whichever credentials are present.
    mail_transport: Optional[Literal["smtp", "resend", "memory"]] = Field(
        default=None
    )
    mail_from: Optional[str] = Field(default=None)
    mail_to: Optional[str] = Field(default=None)
    mail_timeout_seconds: float = Field(default=15.0)

    # SMTP relay
    email_user: Optional[str] = Field(default=None)
    email_pass: Optional[str] = Field(default=None)
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=465)

    # Resend transactional email
    resend_api_key: Optional[str] = Field(default=None)
    resend_api_url: str = Field(default="https://api.resend.com")

    @property
    def sender_address(self) -> Optional[str]:
        return self.mail_from or self.email_user

    @property
    def recipient_address(self) -> Optional[str]:
        return self.mail_to or self.email_user

    def resolved_mail_transport(self) -> str:
        if self.use_in_memory_backends:
            return "memory"
        if self.mail_transport:
            return self.mail_transport
        if self.resend_api_key:
            return "resend"
        if self.email_user and self.email_pass:
            return "smtp"
        return "memory"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
