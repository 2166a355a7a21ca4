# Configuration module for the location service
from .settings import (
    ConfigurationError,
    Environment,
    Settings,
    StoreBackend,
    clear_settings_cache,
    get_settings,
    validate_startup,
)

__all__ = [
    "ConfigurationError",
    "Environment",
    "Settings",
    "StoreBackend",
    "clear_settings_cache",
    "get_settings",
    "validate_startup",
]
