"""Configuration settings for the vault sync backend."""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings

from vaultsync.crypto import generate_key

logger = logging.getLogger("vaultsync.config")


def _default_database_path() -> str:
    return str(Path.home() / ".aiprivacyvault" / "metadata.db")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Service
    service_name: str = "AI Privacy Vault Sync"
    service_port: int = 8080

    # Record store
    database_path: str = _default_database_path()
    store_timeout_seconds: float = 5.0
    sync_max_attempts: int = 3

    # Secrets - generated per process when unset, which invalidates tokens
    # and stored envelopes on restart
    jwt_secret_key: str | None = None
    encrypt_key: str | None = None

    # JWT
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    # Only these sources may set X-Forwarded-For
    trusted_proxy_cidrs: list[str] = [
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",
        "::1/128",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model

    @model_validator(mode="after")
    def _fill_missing_secrets(self) -> "Settings":
        if not self.jwt_secret_key:
            logger.warning("JWT_SECRET_KEY not set; generating a process-local secret")
            self.jwt_secret_key = secrets.token_urlsafe(32)
        if not self.encrypt_key:
            logger.warning("ENCRYPT_KEY not set; generating a process-local key")
            self.encrypt_key = generate_key(32)
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
