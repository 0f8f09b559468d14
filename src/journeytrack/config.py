"""Tracker configuration.

Values default to the production tuning and can be overridden through
``JOURNEYTRACK_*`` environment variables via :meth:`TrackerConfig.from_env`.
"""

import os

from pydantic import BaseModel, Field, field_validator

from journeytrack.utils.exceptions import ConfigurationError
from journeytrack.utils.logging import configure_logging

ENV_PREFIX = "JOURNEYTRACK_"


class TrackerConfig(BaseModel):
    """Configuration for one tracker instance."""

    # Remote API
    api_base_url: str = "http://localhost:3015"
    access_token: str | None = None
    request_timeout: float = 10.0
    beacon_timeout: float = 5.0

    # Storage
    storage_path: str | None = None  # Device store file; None keeps it in memory
    storage_prefix: str = "jt_"

    # Session identity
    session_timeout_seconds: float = 30 * 60
    recently_ended_window_seconds: float = 5.0

    # Periodic work
    score_interval_seconds: float = 30.0
    scroll_sync_interval_seconds: float = 10.0
    critical_sync_interval_seconds: float = 60.0

    # Debounces
    scroll_debounce_seconds: float = 0.5
    interaction_debounce_seconds: float = 1.0
    scroll_sync_debounce_seconds: float = 2.0

    # Retry
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)

    # Location lookup (empty URL disables)
    location_lookup_url: str = "https://ipapi.co/json/"
    location_timeout: float = 3.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize the API base URL."""
        return value.rstrip("/")

    @classmethod
    def from_env(cls, **overrides) -> "TrackerConfig":
        """Build configuration from environment variables.

        Args:
            **overrides: Explicit values that win over the environment.

        Returns:
            TrackerConfig instance.

        Raises:
            ConfigurationError: If an environment value cannot be parsed.
        """
        values: dict = {}
        for name in cls.model_fields:
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)

        try:
            return cls.model_validate(values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid tracker configuration: {e}") from e

    def setup_logging(self) -> None:
        """Configure structlog from the log settings."""
        configure_logging(self.log_level, self.log_json)

    def storage_key(self, name: str) -> str:
        """Get the prefixed storage key for a logical name."""
        return f"{self.storage_prefix}{name}"
