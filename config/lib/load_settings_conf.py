"""Settings configuration loader module.

This module handles loading and parsing of the settings.conf file which holds
the hosted platform credentials and the tunables of the marketplace API.

The settings file uses INI format with a [DEFAULT] section containing key-value
pairs. Every key can be overridden by an environment variable (see ENV_VARS),
so a deployment may run without any settings.conf at all.

Example settings.conf:
    [DEFAULT]
    supabase_url = https://project.supabase.co
    supabase_anon_key = public-anon-key
    supabase_service_role_key = service-role-key
    cron_secret = change-me

Raises:
    SettingsError: If the settings file is invalid or holds invalid values
"""
from configparser import ConfigParser
from pathlib import Path
from typing import Dict, Any, List, Mapping, Optional
import os

class ConfigValidationError:
    """Helper class to format configuration validation errors"""
    def __init__(self):
        self.invalid: List[str] = []
        self.missing_sections: List[str] = []

    def has_errors(self) -> bool:
        """Check if any errors exist"""
        return bool(self.invalid or self.missing_sections)

    def format_message(self) -> str:
        """Format error message in a clean, readable way"""
        messages = []

        if self.missing_sections:
            messages.append("Missing required sections:")
            messages.extend(f"  - {item}" for item in self.missing_sections)

        if self.invalid:
            if messages:
                messages.append("")
            messages.append("Invalid settings:")
            messages.extend(f"  - {item}" for item in self.invalid)

        return "\n".join(messages)

class SettingsError(Exception):
    """Raised when there are issues loading or parsing the settings configuration."""
    pass

# Default settings
DEFAULTS = {
    'supabase_url': '',
    'supabase_anon_key': '',
    'supabase_service_role_key': '',
    'storage_bucket': 'media',
    'cron_secret': '',
    'exchange_rate_api_key': '',
    'exchange_rate_url': 'https://v6.exchangerate-api.com/v6',
    'exchange_rate_ttl_seconds': '3600',  # Rates are refreshed hourly
    'allowed_avatar_domains': 'www.routteme.com',
    'environment': 'development',
    'log_level': 'INFO',
    'review_count_cache_size': '1000',
    'review_count_cache_ttl': '300',  # 5 minutes
    'review_list_cache_size': '500',
    'review_list_cache_ttl': '60',  # Review lists change more often
    'rate_limit_window_seconds': '60',
    'rate_limit_max_requests': '100',
}

# Environment variables that override settings.conf keys
ENV_VARS = {
    'supabase_url': 'SUPABASE_URL',
    'supabase_anon_key': 'SUPABASE_ANON_KEY',
    'supabase_service_role_key': 'SUPABASE_SERVICE_ROLE_KEY',
    'storage_bucket': 'STORAGE_BUCKET',
    'cron_secret': 'CRON_SECRET',
    'exchange_rate_api_key': 'EXCHANGE_RATE_API_KEY',
    'exchange_rate_url': 'EXCHANGE_RATE_URL',
    'allowed_avatar_domains': 'ALLOWED_AVATAR_DOMAINS',
    'environment': 'APP_ENV',
    'log_level': 'LOG_LEVEL',
}

INT_SETTINGS = (
    'exchange_rate_ttl_seconds',
    'review_count_cache_size',
    'review_count_cache_ttl',
    'review_list_cache_size',
    'review_list_cache_ttl',
    'rate_limit_window_seconds',
    'rate_limit_max_requests',
)

LIST_SETTINGS = ('allowed_avatar_domains',)

def load_settings_conf(
    settings_path: str = ".",
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Load settings.conf (if present), apply environment overrides and validate.

    Args:
        settings_path: Directory containing settings.conf
        environ: Environment mapping, defaults to os.environ

    Returns:
        Dictionary containing parsed settings

    Raises:
        SettingsError: If parsing fails or validation fails
    """
    environ = os.environ if environ is None else environ
    config_path = Path(settings_path) / 'settings.conf'
    settings: Dict[str, Any] = dict(DEFAULTS)

    if config_path.exists():
        try:
            parser = ConfigParser()
            parser.read(config_path)
        except Exception as e:
            raise SettingsError(f"Error parsing settings.conf: {str(e)}")

        if not parser.defaults():
            errors = ConfigValidationError()
            errors.missing_sections.append('[DEFAULT]')
            raise SettingsError(
                "Settings Configuration Validation Failed\n\n" +
                errors.format_message()
            )

        settings.update(parser.defaults())

    for key, var in ENV_VARS.items():
        if environ.get(var):
            settings[key] = environ[var]

    return validate_settings(settings)

def validate_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Validate loaded settings.

    Args:
        settings: Dictionary of settings to validate

    Returns:
        Validated and processed settings

    Raises:
        SettingsError: If validation fails
    """
    errors = ConfigValidationError()

    for key in INT_SETTINGS:
        try:
            settings[key] = int(settings[key])
            if settings[key] < 1:
                errors.invalid.append(f"{key}: must be at least 1")
        except (ValueError, TypeError, KeyError):
            errors.invalid.append(f"{key}: expected an integer, got {settings.get(key)!r}")

    for key in LIST_SETTINGS:
        value = settings.get(key) or ''
        if isinstance(value, str):
            settings[key] = [item.strip() for item in value.split(',') if item.strip()]

    settings['environment'] = str(settings.get('environment') or 'development').lower()
    settings['log_level'] = str(settings.get('log_level') or 'INFO').upper()
    settings['supabase_url'] = str(settings.get('supabase_url') or '').rstrip('/')

    if errors.has_errors():
        raise SettingsError(
            "Settings Configuration Validation Failed\n\n" +
            errors.format_message()
        )

    return settings
