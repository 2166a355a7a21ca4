"""
Configuration management for the location service.

This module provides centralized configuration loading and validation using
Pydantic settings. Values come from environment variables or .env files;
nothing environment-specific (port, store endpoint, index name) is hardcoded.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class StoreBackend(str, Enum):
    """Location store implementations selectable by configuration."""
    ELASTICSEARCH = "elasticsearch"
    MEMORY = "memory"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file,
    so later files override earlier ones.

    Args:
        environment: The target environment.

    Returns:
        Tuple of .env file paths to load.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    return (".env", env_file_map.get(environment, ".env.development"))


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The application will fail to start if fields are missing or invalid.
    The ENVIRONMENT variable selects which environment-specific .env file
    is layered on top of the base .env file.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Service identity and listener
    service_name: str = Field(default="location-tracker", description="Service name reported by /info")
    service_version: str = Field(default="1.0.0", description="Service version reported by /info")
    host: str = Field(default="0.0.0.0", description="Listening interface")
    port: int = Field(default=3000, ge=1, le=65535, description="Listening port")

    # Location store
    store_backend: StoreBackend = Field(
        default=StoreBackend.ELASTICSEARCH,
        description="Location store backend: 'elasticsearch' or 'memory'"
    )
    elastic_endpoint: Optional[str] = Field(
        default=None,
        description="Elasticsearch endpoint URL"
    )
    elastic_api_key: Optional[str] = Field(
        default=None,
        description="Elasticsearch API key for authentication"
    )
    locations_index: str = Field(
        default="device-locations",
        description="Index holding location samples"
    )
    store_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Deadline applied to every store call"
    )

    # Query limits
    default_query_limit: int = Field(default=100, ge=1, description="Limit used when none is requested")
    max_query_limit: int = Field(default=1000, ge=1, description="Hard cap on locations per query")

    # Transport limits
    rate_limit_enabled: bool = Field(default=True, description="Enable per-IP rate limiting on /api/")
    rate_limit_requests: int = Field(
        default=100,
        ge=1,
        le=100000,
        description="Maximum API requests per window per IP"
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        ge=1,
        le=86400,
        description="Rate limiting window length"
    )
    max_request_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Largest accepted request body"
    )

    # Lifecycle
    drain_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long shutdown waits for in-flight requests"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("elastic_endpoint")
    @classmethod
    def validate_elastic_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """Validate that elastic_endpoint, when given, is an HTTP/HTTPS URL."""
        if v is None:
            return v
        v = v.strip().strip('"')
        if not v:
            return None
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("elastic_endpoint must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("elastic_api_key")
    @classmethod
    def validate_elastic_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().strip('"')
        return v or None

    @field_validator("locations_index")
    @classmethod
    def validate_locations_index(cls, v: str) -> str:
        """Elasticsearch index names must be lowercase and non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("locations_index cannot be empty")
        if v != v.lower():
            raise ValueError("locations_index must be lowercase")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins format and reject wildcard patterns."""
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if origin == "*" or "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact frontend domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin)
        return validated_origins

    @model_validator(mode="after")
    def validate_store_config(self) -> "Settings":
        """Validate the store backend selection against the environment."""
        if self.store_backend == StoreBackend.ELASTICSEARCH and not self.elastic_endpoint:
            raise ValueError("elastic_endpoint is required when store_backend is 'elasticsearch'")
        if self.store_backend == StoreBackend.MEMORY and self.environment != Environment.DEVELOPMENT:
            raise ValueError(
                "store_backend 'memory' is only allowed in the development environment"
            )
        if self.default_query_limit > self.max_query_limit:
            raise ValueError("default_query_limit cannot exceed max_query_limit")
        return self

    @property
    def rate_limit_string(self) -> str:
        """Rate limit in the slowapi/limits notation, e.g. '100 per 60 second'."""
        return f"{self.rate_limit_requests} per {self.rate_limit_window_seconds} second"


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Create Settings for a specific environment.

    Detects the environment from the ENVIRONMENT variable (if not provided)
    and loads the matching environment-specific .env file.

    Args:
        environment: Optional environment override.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [env_file for env_file in env_files if Path(env_file).exists()]

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files) or None,
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        # Pydantic ValidationError carries field-level errors
        if hasattr(e, "errors"):
            for error in e.errors():
                field_name = ".".join(str(loc) for loc in error.get("loc", [])) or "settings"
                error_type = error.get("type", "")
                error_msg = error.get("msg", str(error))

                if error_type == "missing":
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Primarily useful for testing to allow reloading settings with
    different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate cross-field settings before the application accepts requests.

    Raises:
        ConfigurationError: If any settings are unacceptable for the
            current environment.
    """
    settings = settings or get_settings()
    validation_errors = {}

    # Production must serve a real frontend, not just localhost
    if settings.environment == Environment.PRODUCTION:
        localhost_only = all(
            "localhost" in origin or "127.0.0.1" in origin
            for origin in settings.cors_origins
        )
        if localhost_only:
            validation_errors["cors_origins"] = (
                "Production environment requires non-localhost CORS origins. "
                "Configure your production frontend domain(s)."
            )
        if settings.elastic_endpoint and settings.elastic_endpoint.startswith("http://"):
            validation_errors["elastic_endpoint"] = (
                "Production environment requires an HTTPS Elasticsearch endpoint"
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
