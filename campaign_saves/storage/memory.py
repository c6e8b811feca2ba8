"""
In-memory storage backends.

Process-local implementations of both tiers. Used by the 'memory' backend
setting and as the base for fault-injecting test doubles.
"""

from __future__ import annotations

from collections.abc import Mapping

from campaign_saves.exceptions import NotFoundError
from campaign_saves.schemas.operations import ArchiveEntry
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.storage.protocol import entry_from_metadata


class InMemoryHotStore:
    """
    Hot store backed by a dict keyed by campaign id.

    Snapshots are frozen but their JSON payloads are plain dicts and lists,
    so copies go in and out: a caller mutating its snapshot after saving
    never changes what is stored.
    """

    def __init__(self) -> None:
        self._current: dict[str, Snapshot] = {}

    async def get_current(self, campaign_id: str) -> Snapshot | None:
        stored = self._current.get(campaign_id)
        return stored.model_copy(deep=True) if stored is not None else None

    async def put_current(self, campaign_id: str, snapshot: Snapshot) -> Snapshot | None:
        previous = self._current.get(campaign_id)
        self._current[campaign_id] = snapshot.model_copy(deep=True)
        return previous

    async def remove_current(self, campaign_id: str) -> None:
        self._current.pop(campaign_id, None)

    async def quarantine_current(self, campaign_id: str) -> str | None:
        return None  # Only validated snapshots are ever stored


class InMemoryColdArchive:
    """
    Cold archive backed by a dict keyed by (campaign_id, timestamp).

    Native listing order is insertion order; overwriting a key keeps its
    original position.
    """

    def __init__(self) -> None:
        self._blobs: dict[tuple[str, int], tuple[bytes, str, dict[str, str]]] = {}

    async def put(
        self,
        campaign_id: str,
        timestamp: int,
        blob: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        self._blobs[(campaign_id, timestamp)] = (bytes(blob), content_type, dict(metadata))

    async def list(self, campaign_id: str) -> list[ArchiveEntry]:
        return [
            entry_from_metadata(cid, timestamp, content_type, metadata)
            for (cid, timestamp), (_, content_type, metadata) in self._blobs.items()
            if cid == campaign_id
        ]

    async def get(self, campaign_id: str, timestamp: int) -> tuple[bytes, str]:
        try:
            blob, content_type, _ = self._blobs[(campaign_id, timestamp)]
        except KeyError:
            raise NotFoundError(campaign_id, timestamp) from None
        return blob, content_type

    async def delete(self, campaign_id: str, timestamp: int) -> None:
        self._blobs.pop((campaign_id, timestamp), None)
