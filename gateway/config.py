"""
Configuration Management Module

This module handles all gateway configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and
validation. The editor plugin may also pass its options as a JSON object on
the command line; those values take precedence over the environment.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Validate configuration at startup (fail-fast approach)
- Components receive a Settings value explicitly; only the entry point
  reads the cached instance
"""

import json
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when gateway settings cannot be loaded."""
    pass


class Settings(BaseSettings):
    """
    Gateway settings loaded from environment variables.

    The GitLab token is loaded from the environment (or the plugin
    options) only, and is never logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # GitLab Connection
    # =========================================================================
    gitlab_url: str = Field(
        description="Base URL of the GitLab instance, e.g. https://gitlab.com"
    )

    gitlab_token: str = Field(
        description="Personal access token sent as PRIVATE-TOKEN"
    )

    remote: str = Field(
        default="origin",
        description="Git remote used to work out the project path"
    )

    chosen_target_branch: Optional[str] = Field(
        default=None,
        description="Only consider merge requests targeting this branch"
    )

    merge_request_id: Optional[int] = Field(
        default=None,
        ge=1,
        description="Pin the merge request IID instead of resolving it by branch"
    )

    emoji_path: Optional[str] = Field(
        default=None,
        description="Path to a JSON file with the emoji catalog"
    )

    # =========================================================================
    # Upstream Request Policy
    # =========================================================================
    gitlab_rate_limit: int = Field(
        default=600,
        ge=1,
        description="GitLab API requests allowed per minute"
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts on transport errors"
    )

    retry_base_delay: float = Field(
        default=0.5,
        ge=0.0,
        description="Base delay between retries in seconds"
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for a single GitLab request in seconds"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="localhost",
        description="Host to bind the server"
    )

    port: int = Field(
        default=0,
        ge=0,
        le=65535,
        description="Port to bind the server (0 picks a free port)"
    )

    readiness_attempts: int = Field(
        default=20,
        ge=1,
        description="How many times to poll /ping after the listener starts"
    )

    readiness_interval: float = Field(
        default=0.05,
        gt=0.0,
        description="Seconds to wait between readiness polls"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_path: Optional[str] = Field(
        default=None,
        description="Also write logs to this file"
    )

    debug_gitlab_request: bool = Field(
        default=False,
        description="Log every outgoing GitLab request"
    )

    debug_gitlab_response: bool = Field(
        default=False,
        description="Log every GitLab response"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("gitlab_url")
    @classmethod
    def validate_gitlab_url(cls, v: str) -> str:
        """Require a non-empty URL and drop the trailing slash."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("GitLab instance URL cannot be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def api_base_url(self) -> str:
        """Root of the GitLab v4 REST API."""
        return f"{self.gitlab_url}/api/v4"


def load_settings(options_json: Optional[str] = None) -> Settings:
    """
    Build settings from the environment plus optional plugin options.

    Args:
        options_json: JSON object passed by the editor plugin; its keys
            override environment values

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If the JSON is malformed or validation fails
    """
    overrides: Dict[str, Any] = {}
    if options_json:
        try:
            overrides = json.loads(options_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failure parsing plugin settings: {e}") from e
        if not isinstance(overrides, dict):
            raise ConfigurationError("Plugin settings must be a JSON object")

    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid gateway settings: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings loaded from the environment.

    Only the process entry point should call this; everything else
    receives its Settings explicitly.
    """
    return load_settings()
