"""Configuration management for TravelCMS.

This module provides centralized configuration using Pydantic Settings.
Values come from environment variables (case-insensitive) and an optional
``.env`` file in the working directory.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, SQL echo available, file logs on
    - PRODUCTION: INFO logging, JSON logs, larger connection pool
    - TESTING: In-memory database, ERROR logging, no file logging
    - STAGING: Production-like but with a smaller pool

Example:
    >>> from travelcms.config import settings
    >>> settings.database_url
    'sqlite:////.../data/travelcms.db'
    >>> settings.posts_page_size
    10
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, safe defaults
        PRODUCTION: Conservative settings, structured logs
        TESTING: In-memory database, minimal logging, fast execution
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        environment: Active runtime profile
        data_dir: Base directory for the database file and logs
        database_url: SQLAlchemy URL (defaults to data_dir/travelcms.db)
        media_root: Directory media ``file_path`` values are relative to
        pool_size: Connection pool size for non-SQLite engines
        pool_timeout: Seconds to wait for a pooled connection
        echo_sql: Echo SQL statements through the engine logger
        posts_page_size: Default page size for blog post lists
        listings_page_size: Default page size for directory listing lists
        media_page_size: Default page size for media lists
        max_page_size: Upper bound applied to any requested page size
        review_min_length: Minimum review body length in characters
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Storage
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for the database file and logs",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL (defaults to sqlite in data_dir)",
    )
    media_root: Optional[Path] = Field(
        default=None,
        description="Root directory for uploaded media files (defaults to data_dir/uploads)",
    )

    # Connection pool
    pool_size: int = Field(5, ge=1, le=50, description="Connection pool size")
    pool_timeout: float = Field(
        30.0,
        gt=0,
        description="Seconds to wait for a pooled connection before failing",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL statements")

    # Pagination
    posts_page_size: int = Field(10, ge=1, le=100)
    listings_page_size: int = Field(10, ge=1, le=100)
    media_page_size: int = Field(20, ge=1, le=100)
    max_page_size: int = Field(100, ge=1, le=500)

    # Content rules
    review_min_length: int = Field(
        10,
        ge=0,
        description="Minimum number of characters in a review body",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging, JSON logs, SQL echo off
            - DEVELOPMENT: DEBUG logging, human-readable logs
            - TESTING: In-memory database, ERROR logging, no file logging
            - STAGING: INFO logging, JSON logs

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True
            self.echo_sql = False

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.database_url = "sqlite:///:memory:"
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.echo_sql = False

        elif self.environment == Environment.STAGING:
            self.pool_size = min(self.pool_size, 3)
            self.log_level = "INFO"
            self.log_json = True

        return self

    @model_validator(mode="after")
    def set_storage_defaults(self) -> "Settings":
        """Derive database URL and media root from data_dir when unset."""
        if not self.database_url:
            self.database_url = f"sqlite:///{self.data_dir / 'travelcms.db'}"
        if self.media_root is None:
            self.media_root = self.data_dir / "uploads"
        return self

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return str(self.database_url).startswith("sqlite")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def is_staging(self) -> bool:
        """Check if running in staging environment."""
        return self.environment == Environment.STAGING

    @property
    def log_file(self) -> Optional[Path]:
        """Get the log file path, or None when file logging is disabled."""
        return self.data_dir / "travelcms.log" if self.log_to_file else None

    def redact_url(self, url: Optional[str] = None) -> str:
        """Redact the password portion of a database URL for logging.

        Args:
            url: URL to redact (defaults to database_url)

        Returns:
            URL with any password replaced by ``***``
        """
        url = url or self.database_url or ""
        if "@" not in url or "://" not in url:
            return url
        scheme, rest = url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


def get_settings() -> Settings:
    """Build a Settings instance from the current environment.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
