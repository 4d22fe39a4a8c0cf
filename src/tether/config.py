"""Configuration management for Tether.

This module provides centralized configuration loaded from environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Config:
    """Library configuration.

    All settings can be overridden via environment variables with the
    TETHER_ prefix (e.g., TETHER_LOG_LEVEL).
    """

    # Resource Configuration
    resource_lazy: bool = True  # default for ResourceOptions.lazy
    log_transitions: bool = False  # DEBUG-log every state write

    # Logging Configuration
    log_level: str = "INFO"
    log_file: str | None = None
    enable_credential_scrubbing: bool = True

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables.

        Environment variables:
            TETHER_RESOURCE_LAZY: Resolve resources on first read (true/false)
            TETHER_LOG_TRANSITIONS: Log every resource state write (true/false)
            TETHER_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
            TETHER_LOG_FILE: Log file path (optional)
            TETHER_ENABLE_CREDENTIAL_SCRUBBING: Enable credential scrubbing (true/false)

        Returns:
            Config instance with values from environment
        """
        return cls(
            resource_lazy=os.getenv("TETHER_RESOURCE_LAZY", "true").lower() == "true",
            log_transitions=os.getenv("TETHER_LOG_TRANSITIONS", "false").lower() == "true",
            log_level=os.getenv("TETHER_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("TETHER_LOG_FILE"),
            enable_credential_scrubbing=os.getenv(
                "TETHER_ENABLE_CREDENTIAL_SCRUBBING", "true"
            ).lower()
            == "true",
        )


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config instance (loads from environment on first call)
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (mainly for testing)."""
    global _config
    _config = None
