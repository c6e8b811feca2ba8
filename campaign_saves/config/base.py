"""
Base configuration for campaign-saves.

Shared settings and the settings factory. Settings are always constructed
explicitly by the caller and passed down; there is no module-level singleton.
"""

from __future__ import annotations

import os
import pathlib
from typing import Literal, TypeVar

import pydantic
import pydantic_settings


T = TypeVar('T', bound='BaseCampaignSettings')


class BaseCampaignSettings(pydantic_settings.BaseSettings):
    """Shared configuration across all campaign-saves entry points."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown settings
    )

    # Application metadata
    APP_NAME: str = 'campaign-saves'
    VERSION: str = '0.1.0'

    # Retention: current save + (MAX_SAVES - 1) archived saves
    MAX_SAVES: int = 10

    # Compression settings for the cold tier
    COMPRESSION: Literal['zstd', 'none'] = 'zstd'
    COMPRESSION_LEVEL: int = 3  # zstd level (3 = balanced)

    @pydantic.field_validator('MAX_SAVES')
    @classmethod
    def validate_max_saves(cls, v: int) -> int:
        """A campaign needs room for the current save plus at least one archived save."""
        if v < 2:
            raise ValueError('MAX_SAVES must be at least 2')
        return v

    @pydantic.field_validator('COMPRESSION_LEVEL')
    @classmethod
    def validate_compression_level(cls, v: int) -> int:
        """Validate compression level is within zstd bounds."""
        if not 1 <= v <= 22:
            raise ValueError('COMPRESSION_LEVEL must be between 1-22')
        return v


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset (production), loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class(_env_file=None)  # No .env file, load from environment only

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)
