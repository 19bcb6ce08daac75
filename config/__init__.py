"""Configuration module for loading and managing application settings"""
from typing import Dict, Any
from .lib.load_settings_conf import load_settings_conf, validate_settings, SettingsError

__all__ = ['settings_conf', 'load_settings_conf', 'validate_settings', 'SettingsError', 'is_production']

try:
    settings_conf: Dict[str, Any] = load_settings_conf()
except SettingsError as e:
    # Re-raise the error but provide more context
    raise SettingsError(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please ensure settings.conf or the matching environment variables are set.\n"
        "See settings.conf.example for the available keys."
    )

def is_production() -> bool:
    """Whether the service runs with production cookie and CORS settings."""
    return settings_conf.get('environment') == 'production'
