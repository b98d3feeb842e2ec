"""Configuration APIs."""

from evebot.config.settings import (
    DEFAULT_CONFIG_PATH,
    OPTION_NAMES,
    AppSettings,
    IdentitySettings,
    RuntimeSettings,
    ServerSettings,
    SettingsError,
    load_settings,
    settings_summary,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "OPTION_NAMES",
    "AppSettings",
    "IdentitySettings",
    "RuntimeSettings",
    "ServerSettings",
    "SettingsError",
    "load_settings",
    "settings_summary",
]
