"""
Operation schemas for service results.

This package contains Pydantic models for operation results returned by services.
"""

from __future__ import annotations

from campaign_saves.schemas.operations.archive import (
    ArchiveEntry,
    SaveIssue,
    SaveMetadata,
    SaveResult,
)
from campaign_saves.schemas.operations.backup import BackupResult

__all__ = [
    # Archive
    'ArchiveEntry',
    'SaveIssue',
    'SaveMetadata',
    'SaveResult',
    # Backup
    'BackupResult',
]
