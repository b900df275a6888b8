"""Application configuration using Pydantic BaseSettings."""

import logging
import sys

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file="../.env", env_file_encoding="utf-8", extra="ignore")

    # Application Database Configuration
    database_url: str = Field(alias="DATABASE_URL")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Bearer token verification (HS256, "sub" claim carries the owner id)
    auth_jwt_secret: str = Field(default="", alias="AUTH_JWT_SECRET")

    # Generation providers
    fal_api_key: str = Field(default="", alias="FAL_API_KEY")
    fal_base_url: str = Field(default="https://queue.fal.run", alias="FAL_BASE_URL")
    kie_api_key: str = Field(default="", alias="KIE_API_KEY")
    kie_base_url: str = Field(default="https://api.kie.ai", alias="KIE_BASE_URL")
    provider_timeout_seconds: float = Field(default=30.0, alias="PROVIDER_TIMEOUT_SECONDS")

    # Reconciliation pass
    reconcile_concurrency: int = Field(default=5, ge=1, alias="RECONCILE_CONCURRENCY")
    reconcile_pass_timeout_seconds: float = Field(
        default=25.0, gt=0, alias="RECONCILE_PASS_TIMEOUT_SECONDS"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @model_validator(mode="after")
    def limit_sqlite_concurrency(self) -> "Settings":
        """Run passes sequentially on SQLite.

        The SQLite engine shares one connection between all sessions, so
        concurrent Units of Work would commit or roll back each other's writes.
        """
        if self.uses_sqlite:
            self.reconcile_concurrency = 1
        return self

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with a list of every missing variable. Validation is skipped
        in test environments so fixtures can build partial settings.
        """
        if self.app_env in ("test", "testing"):
            return self

        missing = []

        if not self.auth_jwt_secret:
            missing.append("AUTH_JWT_SECRET: Shared secret used to verify caller bearer tokens")

        if not self.fal_api_key and not self.kie_api_key:
            missing.append("FAL_API_KEY or KIE_API_KEY: At least one provider key is required")

        if missing:
            error_msg = "CRITICAL: Missing required environment variables:\n\n" + "\n".join(
                f"  - {m}" for m in missing
            )
            error_msg += "\n\nThe application cannot start without these variables."
            error_msg += "\nPlease update your .env file and restart."
            raise ValueError(error_msg)

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability

    Both write to stderr; stdout is reserved for CLI output.
    Loggers are only cached in production so tests can reconfigure.
    """
    level = logging.getLevelName(settings.log_level.upper())

    if settings.app_env == "production":
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=True,
        )
    else:
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=False,
        )
