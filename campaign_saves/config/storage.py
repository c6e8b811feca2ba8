"""
Storage configuration.

Extends base configuration with backend selection, backend credentials and
auto-backup settings.
"""

from __future__ import annotations

import pathlib
from typing import Literal

import pydantic

from campaign_saves.config.base import BaseCampaignSettings


class StorageSettings(BaseCampaignSettings):
    """Backend selection and auto-backup configuration."""

    STORAGE_BACKEND: Literal['memory', 'local', 'firebase'] = 'local'
    STORAGE_PREFIX: str = 'saves'  # Object key prefix in the cold archive

    # Local filesystem backend
    LOCAL_ROOT: pathlib.Path = pathlib.Path.home() / '.campaign-saves'

    # Firebase backend (Firestore hot store + Storage bucket cold archive)
    FIREBASE_PROJECT_ID: str | None = None
    FIREBASE_STORAGE_BUCKET: str | None = None
    FIREBASE_ACCESS_TOKEN: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Auto-backup to a folder
    BACKUP_ENABLED: bool = False
    BACKUP_DIR: pathlib.Path | None = None
    BACKUP_COMPRESS: bool = True
    BACKUP_FREQUENCY_TURNS: int = 10
    BACKUP_MAX_FILES: int = 3

    @pydantic.field_validator('BACKUP_FREQUENCY_TURNS', 'BACKUP_MAX_FILES')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError('must be at least 1')
        return v

    @pydantic.model_validator(mode='after')
    def validate_firebase_settings(self) -> StorageSettings:
        """Fail fast when the firebase backend is selected without its coordinates."""
        if self.STORAGE_BACKEND == 'firebase':
            missing = [
                name
                for name in ('FIREBASE_PROJECT_ID', 'FIREBASE_STORAGE_BUCKET', 'FIREBASE_ACCESS_TOKEN')
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f'STORAGE_BACKEND=firebase requires: {", ".join(missing)}')
        return self
