"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Import"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./ledger_import.db"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Security (identity is issued elsewhere; we only verify bearer tokens)
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # CSV import limits
    IMPORT_MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024
    IMPORT_PREVIEW_ROWS: int = 10  # Persisted on the session
    IMPORT_UPLOAD_PREVIEW_ROWS: int = 5  # Returned from the upload call
    IMPORT_MAX_ERRORS_RETURNED: int = 50
    IMPORT_LARGE_FILE_ROWS: int = 1000
    IMPORT_ROW_DELAY_SECONDS: float = 0.0  # Backpressure between rows; 0 disables
    IMPORT_DEFAULT_CURRENCY: str = "USD"

    # Creation-on-demand defaults (overridable per execute call)
    IMPORT_CREATE_MISSING_ACCOUNTS: bool = False
    IMPORT_CREATE_MISSING_CATEGORIES: bool = True
    IMPORT_CREATE_MISSING_PAYEES: bool = True
    IMPORT_DUPLICATE_POLICY: str = "fail"  # fail or skip

    # Classification oracle (OpenAI-compatible chat completions endpoint)
    CLASSIFIER_ORACLE_URL: Optional[str] = None
    CLASSIFIER_ORACLE_API_KEY: Optional[str] = None
    CLASSIFIER_ORACLE_MODEL: str = "gpt-4o-mini"
    CLASSIFIER_ORACLE_TIMEOUT_SECONDS: float = 10.0

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Monitoring
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # 'text' or 'json' (json for production)
    METRICS_ENABLED: bool = True

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate SECRET_KEY is not using insecure defaults in production."""
        insecure_defaults = [
            "dev-secret-key-change-in-production",
            "your-secret-key-here",
            "change-me",
            "secret",
        ]

        # Get ENVIRONMENT from environment variable directly (before Settings is fully initialized)
        import os

        environment = os.getenv("ENVIRONMENT", "development")

        if environment == "production" and (v in insecure_defaults or len(v) < 32):
            raise ValueError(
                "Insecure SECRET_KEY detected in production! "
                "Generate a secure key with: openssl rand -hex 32"
            )

        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only text and json renderers are available."""
        v = v.lower()
        if v not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return v

    @field_validator("IMPORT_DUPLICATE_POLICY")
    @classmethod
    def validate_duplicate_policy(cls, v: str) -> str:
        """Duplicate rows either fail or are skipped."""
        v = v.lower()
        if v not in ("fail", "skip"):
            raise ValueError("IMPORT_DUPLICATE_POLICY must be 'fail' or 'skip'")
        return v

    @property
    def oracle_enabled(self) -> bool:
        """Whether a remote classification oracle is configured."""
        return bool(self.CLASSIFIER_ORACLE_URL)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
