"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from cryptography.fernet import Fernet
from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "sqlite://",
    "sqlite+pysqlite://",
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
)


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Device-local database; only read when STORAGE_BACKEND is "database"
    DATABASE_URL: str = "sqlite:///./sharejoy.db"

    # Key-value backend holding the users blob and the current-user pointer
    STORAGE_BACKEND: Literal["memory", "database"] = "database"
    # Fernet key; when set, every stored value is encrypted at rest. Required in prod.
    STORAGE_ENCRYPTION_KEY: SecretStr | None = None

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a SQLite or PostgreSQL URL (e.g. sqlite:///./sharejoy.db)"
            )
        return v.strip()

    @field_validator("API_V1_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("API_V1_PREFIX must start with '/'")
        return v.rstrip("/")

    @field_validator("STORAGE_ENCRYPTION_KEY")
    @classmethod
    def validate_encryption_key(cls, v: SecretStr | None) -> SecretStr | None:
        if v is None or not v.get_secret_value().strip():
            return None
        try:
            Fernet(v.get_secret_value().strip().encode("ascii"))
        except (ValueError, UnicodeEncodeError):
            raise ValueError(
                "STORAGE_ENCRYPTION_KEY must be a url-safe base64 Fernet key "
                "(generate one with python -m sharejoy.scripts.generate_key)"
            )
        return SecretStr(v.get_secret_value().strip())

    @model_validator(mode="after")
    def require_encryption_in_prod(self) -> "Settings":
        if self.APP_ENV == "prod" and self.STORAGE_ENCRYPTION_KEY is None:
            raise ValueError("STORAGE_ENCRYPTION_KEY is required when APP_ENV=prod")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


settings = get_settings()
