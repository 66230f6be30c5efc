"""Configuration management for RecipeShare.

This module provides centralized configuration using Pydantic Settings,
read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output, tracing disabled
    - PRODUCTION: Structured JSON logs, tracing enabled
    - TESTING: In-memory database, minimal logging, fast execution

Example:
    >>> from recipeshare.config import settings
    >>> print(settings.notification_limit)
    20
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
        PRODUCTION: Conservative settings, tracing enabled
        TESTING: In-memory database, minimal logging
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
        data_dir: Base directory for the database, blobs and logs
        database_path: Path to SQLite database file
        notification_limit: Number of notifications returned per listing
        recipe_page_size: Default number of recipes per listing
        auto_approve_recipes: Publish new recipes without admin review
        gemini_api_key: API key for the LLM text API
        llm_endpoint: Base URL of the generateContent API
        llm_model: Model name used for recipe suggestions
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

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for all data files (database, blobs, logs)",
    )

    # Database Configuration
    database_path: Path = Field(
        Path("recipeshare.db"),  # Will be updated to data_dir/recipeshare.db by validator
        description="Path to SQLite database file (defaults to data_dir/recipeshare.db)",
    )

    # Domain Parameters
    notification_limit: int = Field(
        20,
        ge=1,
        le=200,
        description="Maximum notifications returned by a listing (newest first)",
    )
    recipe_page_size: int = Field(
        20,
        ge=1,
        le=100,
        description="Default number of recipes returned by a listing",
    )
    auto_approve_recipes: bool = Field(
        True,
        description="Mark newly created recipes as approved",
    )

    # LLM Configuration
    gemini_api_key: Optional[str] = Field(
        None,
        alias="GEMINI_API_KEY",
        description="API key for the Gemini text generation API",
    )
    llm_endpoint: str = Field(
        "https://generativelanguage.googleapis.com/v1beta/models",
        description="Base URL for generateContent calls",
    )
    llm_model: str = Field(
        "gemini-pro",
        description="Model used for recipe suggestions",
    )
    llm_timeout_seconds: float = Field(
        60.0,
        gt=0,
        description="Overall timeout for a single LLM request",
    )
    llm_max_concurrency: int = Field(
        2,
        ge=1,
        le=10,
        description="Maximum concurrent LLM requests",
    )
    llm_max_retries: int = Field(
        4,
        ge=1,
        le=20,
        description="Attempts before an LLM call is reported as failed",
    )

    # Blob Store Configuration
    blob_dir: Optional[Path] = Field(
        None,
        description="Directory for uploaded images (defaults to data_dir/blobs)",
    )
    blob_base_url: Optional[str] = Field(
        None,
        description="Public base URL for uploaded images (file:// URLs when unset)",
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

    # Observability (OpenTelemetry)
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

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def set_path_defaults(self) -> "Settings":
        """Derive database and blob locations from data_dir when not set."""
        if self.database_path == Path("recipeshare.db"):
            self.database_path = self.data_dir / "recipeshare.db"
        if self.blob_dir is None:
            self.blob_dir = self.data_dir / "blobs"
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging at least, JSON logs, tracing enabled
            - DEVELOPMENT: DEBUG logging, tracing disabled
            - TESTING: In-memory database, ERROR logging, no file logging, no tracing
            - STAGING: Production-like but with INFO logging

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.TESTING:
            self.database_path = Path(":memory:")
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        return self

    @property
    def uses_memory_database(self) -> bool:
        """Check if the database lives in memory only."""
        return str(self.database_path) == ":memory:"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    def redact_key(self, key: Optional[str] = None) -> str:
        """Redact the LLM API key for logging.

        Args:
            key: Key to redact (defaults to gemini_api_key)

        Returns:
            Redacted key string
        """
        key = key or self.gemini_api_key
        if not key:
            return "None"
        return f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"


def get_settings() -> Settings:
    """Get a freshly loaded settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
