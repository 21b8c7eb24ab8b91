"""
Configuration management for the callstore storage layer.

Non-secret configuration loaded from YAML file, secrets from environment variables.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path("/etc/callstore/config.yaml")
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


# --- Storage Configuration Models ---


class StorageConfig(BaseModel):
    """Storage layer configuration (non-secret)."""

    endpoint_suffix: str = Field(
        default="core.windows.net",
        description="Blob endpoint suffix; account URL is https://<account>.blob.<suffix>",
    )
    default_url_ttl_minutes: int = Field(
        default=240,
        ge=1,
        description="Validity of read URLs when the caller does not ask for one",
    )
    clock_skew_minutes: int = Field(
        default=5,
        ge=0,
        description="Read URLs start this many minutes in the past",
    )
    candidate_locations: list[str] = Field(
        default_factory=lambda: [
            "{identity}-media",
            "{identity}-audiofile",
            "audiofiles",
            "{identity}",
            "audio",
        ],
        description="Ordered containers probed when an object's container is unknown. "
        "{identity} is replaced by the sanitized identity hint.",
    )
    home_location_template: str = Field(
        default="{identity}-media",
        description="Container created on demand for an identity's own recordings",
    )
    delete_concurrency: int = Field(
        default=16,
        ge=1,
        description="Maximum number of deletes in flight during a bulk delete",
    )
    inspect_max_bytes: int = Field(
        default=512 * 1024 * 1024,
        ge=0,
        description="Objects larger than this are not downloaded for duration extraction",
    )


# --- Main Settings ---


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CALLSTORE_",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="callstore")
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    # Secrets
    azure_storage_account_name: str = Field(
        default="",
        validation_alias=AliasChoices(
            "AZURE_STORAGE_ACCOUNT_NAME", "CALLSTORE_AZURE_STORAGE_ACCOUNT_NAME"
        ),
        description="Storage account name",
    )
    azure_storage_account_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "AZURE_STORAGE_ACCOUNT_KEY", "CALLSTORE_AZURE_STORAGE_ACCOUNT_KEY"
        ),
        description="Storage account shared key",
    )

    # Storage
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("azure_storage_account_name", "azure_storage_account_key")
    @classmethod
    def _strip_secret(cls, value: str) -> str:
        return (value or "").strip()

    @property
    def storage_credentials_configured(self) -> bool:
        return bool(self.azure_storage_account_name and self.azure_storage_account_key)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
