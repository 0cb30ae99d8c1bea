"""
Configuration management for Content Bridge.

``Settings`` is read from the environment once, at the application edge.
Everything below the edge receives an explicit ``AirtableConfig``.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

DEFAULT_API_URL = "https://api.airtable.com/v0/"


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = Field(default="Content Bridge")
    debug: bool = Field(default=False)
    content_manage_url: str = Field(default="https://www.example.com")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Table service
    airtable_base_id: str = Field(default="")
    airtable_personal_access_token: str = Field(default="")
    airtable_api_url: str = Field(default=DEFAULT_API_URL)
    airtable_timeout_seconds: float = Field(default=30.0)
    airtable_assets_table: str = Field(default="Assets")
    airtable_status_field: str = Field(default="State")
    airtable_related_field: str = Field(default="Related")

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AirtableConfig(BaseModel):
    """Explicit configuration handed to the record store accessor."""

    base_id: str
    personal_access_token: str
    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = 30.0
    assets_table: str = "Assets"
    status_field: str = "State"
    related_field: str = "Related"
    manage_url: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AirtableConfig":
        """Build the accessor config, failing fast on missing credentials."""
        if not settings.airtable_base_id:
            raise ConfigurationError("AIRTABLE_BASE_ID is not set")
        if not settings.airtable_personal_access_token:
            raise ConfigurationError("AIRTABLE_PERSONAL_ACCESS_TOKEN is not set")
        return cls(
            base_id=settings.airtable_base_id,
            personal_access_token=settings.airtable_personal_access_token,
            api_url=settings.airtable_api_url,
            timeout_seconds=settings.airtable_timeout_seconds,
            assets_table=settings.airtable_assets_table,
            status_field=settings.airtable_status_field,
            related_field=settings.airtable_related_field,
            manage_url=settings.content_manage_url,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
