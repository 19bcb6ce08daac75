"""Command line interface for testing configuration loading"""
from . import settings_conf
from .lib.load_settings_conf import DEFAULTS
from pathlib import Path

SECRET_KEYS = {'supabase_anon_key', 'supabase_service_role_key', 'cron_secret', 'exchange_rate_api_key'}

# Comment lines opening a group of keys in the example file
EXAMPLE_COMMENTS = {
    'supabase_url': "Hosted platform project",
    'cron_secret': 'Shared secret sent by the scheduler as "Authorization: Bearer <secret>"',
    'exchange_rate_api_key': "https://www.exchangerate-api.com/",
    'allowed_avatar_domains': "Comma-separated hosts allowed in avatar URLs",
    'review_count_cache_size': "Review caches",
    'rate_limit_window_seconds': "Per-caller rate limit",
}

# Placeholders shown instead of an empty default
EXAMPLE_VALUES = {
    'supabase_url': 'https://your-project.supabase.co',
}

def example_settings() -> str:
    """Render settings.conf.example with every known key and its default."""
    lines = ["[DEFAULT]"]
    for key, value in DEFAULTS.items():
        comment = EXAMPLE_COMMENTS.get(key)
        if comment:
            if len(lines) > 1:
                lines.append("")
            lines.append(f"# {comment}")
        lines.append(f"{key} = {EXAMPLE_VALUES.get(key, value)}".rstrip())
    return "\n".join(lines) + "\n"

def main():
    """Display loaded configuration"""
    print("\nSettings Configuration:")
    print("-" * 50)
    for key, value in settings_conf.items():
        if key in SECRET_KEYS and value:
            value = '*' * 8
        print(f"{key}: {value}")

    # Save example configuration file
    Path("settings.conf.example").write_text(example_settings())

if __name__ == "__main__":
    main()
