import json
from typing import Any, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVS = frozenset({"prod", "production"})
LOCAL_ENVS = frozenset({"dev", "development", "staging", "stage"})
WEAK_SECRETS = frozenset({"", "change_me", "secret", "dev-secret-key-change-before-prod"})


def _split_origins(raw: Any) -> List[str]:
    """Accepts a comma separated string, a JSON array string or a list."""
    if raw is None:
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text.startswith("["):
            raw = json.loads(text)
            if not isinstance(raw, list):
                raise ValueError("CORS_ORIGINS JSON value must be a list")
        else:
            raw = text.split(",")
    if not isinstance(raw, list):
        raise ValueError(f"Unsupported CORS_ORIGINS value: {raw!r}")
    return [str(origin).strip() for origin in raw if str(origin).strip()]


class Settings(BaseSettings):
    app_name: str = "PharmDesk Backend"
    env: str = "dev"
    secret_key: str
    access_token_expire_minutes: int = Field(default=7 * 24 * 60, ge=1)

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)
    # How long a SQLite writer waits for another terminal's sale to commit.
    sqlite_busy_timeout_seconds: float = Field(default=30.0, gt=0, le=300)

    # LOGIN LOCKOUT
    auth_rate_limit_max_attempts: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)
    auth_rate_limit_lock_seconds: int = Field(default=900, ge=1)

    # INVENTORY
    low_stock_threshold: int = Field(default=10, ge=0)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    cors_origin_regex: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: Any) -> List[str]:
        return _split_origins(value)

    @field_validator("cors_origin_regex", mode="before")
    @classmethod
    def blank_regex_is_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip() or None

    @field_validator("database_url")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("DATABASE_URL is required")
        # postgres:// and bare postgresql:// URLs use the psycopg 3 driver.
        for prefix in ("postgres://", "postgresql://"):
            if cleaned.startswith(prefix):
                return "postgresql+psycopg://" + cleaned[len(prefix):]
        return cleaned

    @model_validator(mode="after")
    def reject_unsafe_production_values(self) -> "Settings":
        if not self.is_production:
            return self

        secret = self.secret_key.strip()
        if secret in WEAK_SECRETS or len(secret) < 32:
            raise ValueError("SECRET_KEY must be a strong random value in production")
        if "*" in self.cors_origins:
            raise ValueError("CORS_ORIGINS cannot contain '*' in production")
        if self.cors_origin_regex:
            raise ValueError("CORS_ORIGIN_REGEX cannot be set in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.env.lower().strip() in PRODUCTION_ENVS

    @property
    def is_local(self) -> bool:
        return self.env.lower().strip() in LOCAL_ENVS

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.lower().startswith("sqlite")


settings = Settings()
