"""
Configuration for the skills_supply sync engine.

Settings are read from keyword arguments, then ``SK_*`` environment variables
(nested with ``__``, e.g. ``SK_GIT__DEEPEN_DEPTH=100``), then a YAML file at
``$SK_CONFIG_FILE`` or ``~/.sk/config.yaml``.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

CONFIG_FILE_ENV = "SK_CONFIG_FILE"
DEFAULT_CONFIG_DIR = ".sk"
DEFAULT_CONFIG_FILENAME = "config.yaml"


class GitSettings(BaseModel):
    """Settings for git subprocesses used to fetch packages."""

    executable: str = "git"
    clone_depth: int = Field(default=1, ge=1)
    deepen_depth: int = Field(default=50, ge=1)
    github_base_url: str = "https://github.com"
    timeout_seconds: float | None = Field(default=300.0, gt=0)

    model_config = ConfigDict(extra="ignore")


class MarketplaceSettings(BaseModel):
    """Settings for marketplace catalog fetches and native plugin installs."""

    fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    claude_command: str = "claude"

    model_config = ConfigDict(extra="ignore")


def config_file_path() -> Path:
    override = os.environ.get(CONFIG_FILE_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILENAME


class Settings(BaseSettings):
    git: GitSettings = Field(default_factory=GitSettings)
    marketplace: MarketplaceSettings = Field(default_factory=MarketplaceSettings)
    temp_dir: str | None = None
    """Parent directory for per-agent temp roots. Defaults to the system temp dir."""

    model_config = SettingsConfigDict(
        env_prefix="SK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=config_file_path()),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def update_global_settings(settings: Settings | None) -> None:
    """Replace the cached settings. Passing ``None`` forces a reload."""
    global _settings
    _settings = settings
