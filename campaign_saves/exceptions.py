"""
Shared exceptions for campaign-saves.

Domain-specific exceptions used across services and storage backends.

Exception Hierarchy:
    CampaignSaveError (base)
    ├── NotFoundError (no current save / no archive entry for a timestamp)
    ├── CorruptArchiveError (blob decodes neither compressed nor plain)
    │   └── UnsupportedSnapshotVersionError (snapshot schema newer than supported)
    ├── EvictionError (retention delete failed - never fails a save)
    ├── BackingStoreError (transport / permission / quota failure of a store)
    └── BackupError (file export or auto-backup failure)
"""

from __future__ import annotations


class CampaignSaveError(Exception):
    """Base exception for all campaign-saves errors."""


class NotFoundError(CampaignSaveError):
    """Raised when the requested current or archived save does not exist."""

    def __init__(self, campaign_id: str, timestamp: int | None = None) -> None:
        self.campaign_id = campaign_id
        self.timestamp = timestamp
        if timestamp is None:
            message = f'No current save found for campaign {campaign_id}'
        else:
            message = f'No archived save at {timestamp} for campaign {campaign_id}'
        super().__init__(message)


class CorruptArchiveError(CampaignSaveError):
    """Raised when a blob cannot be decoded by either the compressed or the plain path."""


class UnsupportedSnapshotVersionError(CorruptArchiveError):
    """Raised when a snapshot was written by a newer schema revision than this loader knows."""

    def __init__(self, version: int, supported: int) -> None:
        self.version = version
        self.supported = supported
        super().__init__(f'Snapshot schema version {version} is newer than supported version {supported}')


class EvictionError(CampaignSaveError):
    """Raised (or reported) when pruning an old archive entry fails."""

    def __init__(self, campaign_id: str, timestamp: int | None, reason: str) -> None:
        self.campaign_id = campaign_id
        self.timestamp = timestamp
        target = f'entry {timestamp}' if timestamp is not None else 'archive listing'
        super().__init__(f'Eviction failed for campaign {campaign_id} ({target}): {reason}')


class BackingStoreError(CampaignSaveError):
    """Raised on transport, permission or quota failures of the hot store or cold archive."""


class BackupError(CampaignSaveError):
    """Raised when a file export or auto-backup cannot be written."""
