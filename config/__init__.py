"""Configuration package for the exam service."""
from .settings import ConfigurationError, Settings, ensure_runtime_config, settings

__all__ = [
    "ConfigurationError",
    "Settings",
    "ensure_runtime_config",
    "settings",
]
