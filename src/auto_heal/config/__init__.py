"""Configuration management for auto-heal."""

from auto_heal.config.exceptions import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
)
from auto_heal.config.models import AutoHealConfig

__all__ = [
    "AutoHealConfig",
    "ConfigurationError",
    "InvalidConfigurationError",
    "MissingConfigurationError",
]
