from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, List, Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.logging_config import get_logger

# Load environment variables from project root .env if present
current_file_path = Path(__file__).resolve()
project_root_depth = 2  # Two levels up from app/core/settings.py to project root

if len(current_file_path.parents) <= project_root_depth:
    project_root = Path.cwd()
else:
    project_root = current_file_path.parents[project_root_depth]

ENV_PATH = project_root / ".env"
load_dotenv(ENV_PATH)

logger = get_logger(__name__)

DEFAULT_EXCLUDED_TECHNICIANS = "kristian m matias"


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=ENV_PATH,
        extra="ignore",
        populate_by_name=True,
    )

    port: int = Field(default=3001, alias="PORT")
    node_env: Literal["development", "production", "test"] = Field(
        default="development", alias="NODE_ENV"
    )

    # Upstream ServiceDesk Plus
    servicedesk_base_url: str = Field(alias="SERVICEDESK_BASE_URL")
    servicedesk_authtoken: str = Field(min_length=1, alias="SERVICEDESK_AUTHTOKEN")
    upstream_timeout_ms: int = Field(default=15000, ge=1, alias="UPSTREAM_TIMEOUT_MS")
    upstream_retries: int = Field(default=2, ge=0, alias="UPSTREAM_RETRIES")
    upstream_backoff_base_ms: int = Field(default=1000, ge=0, alias="UPSTREAM_BACKOFF_BASE_MS")
    accounts_max_pages: int = Field(default=10, ge=1, alias="ACCOUNTS_MAX_PAGES")

    # Browser access and admin controls
    allowed_origins_raw: str = Field(alias="ALLOWED_ORIGINS")
    admin_sync_key: str = Field(min_length=32, alias="ADMIN_SYNC_KEY")
    rate_limit_per_minute: int = Field(default=60, ge=1, alias="RATE_LIMIT_PER_MINUTE")

    # Ticket filtering
    excluded_technicians_raw: str = Field(
        default=DEFAULT_EXCLUDED_TECHNICIANS, alias="EXCLUDED_TECHNICIANS"
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("servicedesk_base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("SERVICEDESK_BASE_URL must be an http(s) URL")
        return value.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()

    @property
    def allowed_origins(self) -> List[str]:
        return _split_csv(self.allowed_origins_raw)

    @property
    def excluded_technicians(self) -> FrozenSet[str]:
        return frozenset(name.lower() for name in _split_csv(self.excluded_technicians_raw))

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Return a singleton instance of the application settings.

    Uses an internal cache to ensure the same Settings instance is returned on each call.
    """
    return Settings()


def load_settings_or_exit() -> Settings:
    """Validate the environment once at startup; exit with status 1 when it is invalid."""
    try:
        return get_settings()
    except ValidationError as exc:
        # Report which variables failed, never their values.
        field_errors: dict[str, list[str]] = {}
        for error in exc.errors():
            name = str(error["loc"][0]) if error.get("loc") else "settings"
            field_errors.setdefault(name, []).append(error.get("msg", "invalid"))
        logger.error("Invalid environment variables", field_errors=field_errors)
        sys.exit(1)
