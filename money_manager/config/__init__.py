"""Configuration package."""

from money_manager.config.settings import (
    AppSettings,
    CloudinarySettings,
    DatabaseSettings,
    GeminiSettings,
    Settings,
    SmtpSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "DatabaseSettings",
    "GeminiSettings",
    "Settings",
    "SmtpSettings",
    "get_settings",
    "validate_all_settings",
]
