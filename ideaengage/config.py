"""Configuration management for ideaengage.

This module provides centralized configuration using Pydantic Settings,
read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output, tracing off
    - PRODUCTION: Conservative settings, JSON logs, tracing enabled
    - TESTING: In-memory database, minimal logging, no file output
    - STAGING: Production-like with INFO logging

Example:
    >>> from ideaengage.config import settings, Environment
    >>> print(settings.database_url)
    sqlite:////abs/path/data/ideaengage.db
    >>> settings.environment
    <Environment.DEVELOPMENT: 'development'>
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
        PRODUCTION: Conservative settings, tracing enabled, optimized for stability
        TESTING: In-memory database, minimal logging, fast execution
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


# Overrides applied on top of env values for each profile.
_PROFILES: dict[Environment, dict[str, object]] = {
    Environment.DEVELOPMENT: {"log_level": "DEBUG", "log_json": False, "enable_tracing": False},
    Environment.PRODUCTION: {"log_level": "INFO", "log_json": True, "enable_tracing": True},
    Environment.STAGING: {"log_level": "INFO", "log_json": True, "enable_tracing": True},
    Environment.TESTING: {
        "database_path": Path(":memory:"),
        "log_level": "ERROR",
        "log_to_file": False,
        "log_json": False,
        "enable_tracing": False,
    },
}


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        environment: Runtime profile
        data_dir: Base directory for the SQLite database and log files
        database_path: Path to SQLite database file
        database_url_override: Full SQLAlchemy URL (e.g. PostgreSQL); wins over database_path
        database_busy_timeout: Seconds a SQLite writer waits on a locked database
        user_id_header: Request header carrying the trusted caller identity
        require_known_ideas: Reject operations on ideas missing from the idea catalog
        api_host: Bind address for ``ideaengage serve``
        api_port: Bind port for ``ideaengage serve``
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for all data files (database, logs)",
    )

    # Database Configuration
    database_path: Path = Field(
        Path("ideaengage.db"),  # Will be updated to data_dir/ideaengage.db by validator
        description="Path to SQLite database file (defaults to data_dir/ideaengage.db)",
    )
    database_url_override: Optional[str] = Field(
        None,
        alias="DATABASE_URL",
        description="SQLAlchemy database URL; overrides database_path when set",
    )
    database_busy_timeout: float = Field(
        30.0,
        gt=0,
        le=300,
        description="Seconds a SQLite connection waits for a write lock",
    )

    # API Configuration
    api_host: str = Field("127.0.0.1", description="Host for the HTTP server")
    api_port: int = Field(8000, ge=1, le=65535, description="Port for the HTTP server")
    user_id_header: str = Field(
        "X-User-Id",
        description="Header set by the upstream auth layer with the caller's user id",
    )
    require_known_ideas: bool = Field(
        False,
        description="Reject engagement on idea ids not present in the idea catalog",
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

    # Observability
    metrics_enabled: bool = Field(
        default=True,
        description="Expose Prometheus metrics on /metrics",
    )
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry distributed tracing",
    )
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry OTLP endpoint for traces (e.g., http://localhost:4317)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("user_id_header")
    @classmethod
    def validate_user_id_header(cls, v: str) -> str:
        """Header names must be non-empty and free of whitespace."""
        v = v.strip()
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("user_id_header must be a single non-empty header name")
        return v

    @model_validator(mode="after")
    def set_database_path_default(self) -> "Settings":
        """Set database_path to data_dir/ideaengage.db if not explicitly provided."""
        if self.database_path == Path("ideaengage.db"):
            self.database_path = self.data_dir / "ideaengage.db"
        if str(self.database_path) != ":memory:":
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply the overrides of the selected environment profile."""
        for name, value in _PROFILES[self.environment].items():
            if name == "log_level" and self.environment == Environment.PRODUCTION:
                # production keeps an explicit WARNING or ERROR, only DEBUG is raised
                value = self.log_level if self.log_level != "DEBUG" else value
            setattr(self, name, value)
        return self

    @property
    def database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_url_override:
            return self.database_url_override
        return f"sqlite:///{self.database_path}"

    @property
    def is_sqlite(self) -> bool:
        """True when the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    def redacted_database_url(self) -> str:
        """Database URL with any password masked, for logging.

        Returns:
            URL string safe to print
        """
        from sqlalchemy.engine import make_url

        return make_url(self.database_url).render_as_string(hide_password=True)


def get_settings() -> Settings:
    """Get a fresh settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
