"""
Configuration Management for Money Manager

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so that every external dependency
(database, LLM, blob storage, SMTP) is visible in one place and validated
at startup.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///money_manager.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration for the chat assistant."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Optional so the rest of the app works without chat configured
    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Model used for chat completions"
    )
    title_model_name: str = Field(
        default="gemini-1.5-flash",
        description="Model used for thread title generation"
    )
    max_tokens: int = Field(
        default=4096,
        ge=100,
        le=8192,
        description="Maximum tokens in a chat response"
    )
    temperature: float = Field(
        default=1.0,
        ge=0.0,
        le=2.0,
        description="Default sampling temperature"
    )
    max_chat_messages: int = Field(
        default=50,
        ge=1,
        description="Most recent messages sent as conversation history"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary blob storage for receipt images."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="money_manager/receipts",
        description="Folder receipts are uploaded into"
    )


class SmtpSettings(BaseSettings):
    """SMTP configuration for outgoing email."""

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=False,
        description="Send emails at all"
    )
    host: str = Field(
        default="localhost",
        description="SMTP server host"
    )
    port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port"
    )
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = Field(
        default=True,
        description="Upgrade the connection with STARTTLS"
    )
    use_ssl: bool = Field(
        default=False,
        description="Connect with implicit TLS (SMTP_SSL)"
    )
    from_address: str = Field(
        default="MoneyManager <no-reply@moneymanager.local>",
        description="From header for outgoing mail"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    default_currency: str = Field(
        default="USD",
        description="Currency assigned to new users"
    )

    # Receipt upload limits
    max_receipt_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum receipt image size in MB"
    )
    supported_receipt_types: str = Field(
        default="image/jpeg,image/jpg,image/png,image/webp",
        description="Comma-separated list of accepted receipt MIME types"
    )

    @field_validator("default_currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def supported_receipt_types_list(self) -> list[str]:
        """Get supported receipt MIME types as a list."""
        return [t.strip().lower() for t in self.supported_receipt_types.split(",")]

    @property
    def max_receipt_size_bytes(self) -> int:
        """Get max receipt size in bytes."""
        return self.max_receipt_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def smtp(self) -> SmtpSettings:
        return SmtpSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("database", "gemini", "cloudinary", "smtp", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    # Chat needs an API key even though the settings object loads without one
    if results.get("gemini") and not settings.gemini.api_key:
        results["gemini"] = False
        results["gemini_error"] = "GEMINI_API_KEY is not set"

    return results
