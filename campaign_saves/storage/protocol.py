"""
Storage backend protocols for the two save tiers.

HotStore holds exactly one uncompressed "current" snapshot per campaign.
ColdArchive holds the compressed history, one blob per (campaign, timestamp).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from campaign_saves.schemas.operations import ArchiveEntry
from campaign_saves.schemas.snapshot import Snapshot


@runtime_checkable
class HotStore(Protocol):
    """Protocol for the single-slot current-snapshot store."""

    async def get_current(self, campaign_id: str) -> Snapshot | None:
        """
        Read the current snapshot.

        Args:
            campaign_id: Campaign identifier

        Returns:
            The current snapshot, or None if the campaign was never saved

        Raises:
            BackingStoreError: If the store cannot be reached
            CorruptArchiveError: If the stored document is not a valid snapshot
        """
        ...

    async def put_current(self, campaign_id: str, snapshot: Snapshot) -> Snapshot | None:
        """
        Overwrite the current snapshot.

        Args:
            campaign_id: Campaign identifier
            snapshot: New current snapshot

        Returns:
            The snapshot that was current before the write, or None

        Raises:
            BackingStoreError: If the write fails
        """
        ...

    async def remove_current(self, campaign_id: str) -> None:
        """
        Remove the current snapshot (campaign deletion only). Absent is not an error.

        Raises:
            BackingStoreError: If the delete fails
        """
        ...

    async def quarantine_current(self, campaign_id: str) -> str | None:
        """
        Move an unreadable current document aside, byte for byte, so a new save
        can take the slot without destroying it.

        put_current does the same on its own when the document it replaces
        cannot be decoded.

        Returns:
            Location of the moved document, or None if there was nothing to move

        Raises:
            BackingStoreError: If the document cannot be moved
        """
        ...


@runtime_checkable
class ColdArchive(Protocol):
    """Protocol for the historical snapshot archive."""

    async def put(
        self,
        campaign_id: str,
        timestamp: int,
        blob: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        """
        Write an archive entry. Last writer wins per (campaign_id, timestamp).

        Args:
            campaign_id: Campaign identifier
            timestamp: Entry key (epoch milliseconds)
            blob: Encoded snapshot (compressed or plain)
            content_type: Content type of the blob
            metadata: Custom metadata; carries 'saveName' and 'savedAt'

        Raises:
            BackingStoreError: If the write fails
        """
        ...

    async def list(self, campaign_id: str) -> list[ArchiveEntry]:
        """
        Enumerate all entries of a campaign in the backend's native order.

        Raises:
            BackingStoreError: If the listing fails
        """
        ...

    async def get(self, campaign_id: str, timestamp: int) -> tuple[bytes, str]:
        """
        Read an archive entry.

        Returns:
            Tuple of (blob, content_type)

        Raises:
            NotFoundError: If no entry exists for the timestamp
            BackingStoreError: If the read fails
        """
        ...

    async def delete(self, campaign_id: str, timestamp: int) -> None:
        """
        Delete an archive entry. Deleting a missing entry is not an error.

        Raises:
            BackingStoreError: If the delete fails
        """
        ...


def safe_path_component(campaign_id: str) -> str:
    """Reject campaign ids that would escape their directory or object prefix."""
    if not campaign_id or campaign_id in ('.', '..') or '/' in campaign_id or '\\' in campaign_id:
        raise ValueError(f'Invalid campaign id: {campaign_id!r}')
    return campaign_id


def archive_key(prefix: str, campaign_id: str, timestamp: int) -> str:
    """Object key of a cold-tier entry: '{prefix}/{campaign_id}/save_{timestamp}.json.zst'."""
    return f'{prefix}/{campaign_id}/save_{timestamp}.json.zst'


def entry_from_metadata(
    campaign_id: str, timestamp: int, content_type: str, metadata: Mapping[str, str]
) -> ArchiveEntry:
    """
    Build an ArchiveEntry from a backend's custom metadata.

    Missing or malformed 'savedAt' falls back to the key timestamp; a missing
    'saveName' reads as 'Unnamed Save'.
    """
    try:
        saved_at = int(metadata.get('savedAt', timestamp))
    except ValueError:
        saved_at = timestamp
    return ArchiveEntry(
        campaign_id=campaign_id,
        timestamp=timestamp,
        save_name=metadata.get('saveName') or 'Unnamed Save',
        saved_at=saved_at,
        content_type=content_type,
    )
