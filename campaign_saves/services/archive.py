"""
Campaign archive service - framework-agnostic save orchestration.

Composes the hot store, cold archive, codec and retention policy into the
public save / load / list / delete operations.

Save pipeline:
1. Read the current hot save
2. Demote it: encode + compress, prune the archive, write to the cold tier
   keyed by the demoted snapshot's own created_at
3. Write the new snapshot as current

Step 2 is best-effort. Any failure there is logged and returned in
SaveResult.issues, and step 3 still runs: losing history hygiene is
recoverable, losing the player's new progress is not. Step 3 failures are
always raised. A current save that cannot be decoded is moved aside by the
hot store and reported as a read issue rather than overwritten.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from campaign_saves.exceptions import CorruptArchiveError, EvictionError, NotFoundError
from campaign_saves.protocols import LoggerProtocol, StdlibLogger
from campaign_saves.schemas.operations import SaveIssue, SaveMetadata, SaveResult
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.services.codec import SnapshotCodec, is_compressed_content_type
from campaign_saves.services.retention import RetentionPolicy, RetentionReport
from campaign_saves.storage.protocol import ColdArchive, HotStore

__all__ = ['CampaignArchiveService']


class CampaignArchiveService:
    """
    Service for tiered campaign saves.

    Owns the invariant: at most one current save and at most max_saves - 1
    archived saves per campaign. Saves of the same campaign are serialized
    within this process; there is no cross-process or cross-device lock.
    """

    def __init__(
        self,
        hot_store: HotStore,
        cold_archive: ColdArchive,
        codec: SnapshotCodec | None = None,
        retention: RetentionPolicy | None = None,
    ) -> None:
        """
        Initialize archive service.

        Args:
            hot_store: Current-save store
            cold_archive: Historical save archive
            codec: Snapshot codec (default: zstd compression)
            retention: Retention policy (default: 10 saves over cold_archive)
        """
        self.hot_store = hot_store
        self.cold_archive = cold_archive
        self.codec = codec or SnapshotCodec()
        self.retention = retention or RetentionPolicy(cold_archive)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def _campaign_lock(self, campaign_id: str) -> AsyncIterator[None]:
        """Serialize work on one campaign; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(campaign_id, asyncio.Lock())
        self._lock_users[campaign_id] = self._lock_users.get(campaign_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[campaign_id] -= 1
            if not self._lock_users[campaign_id]:
                del self._lock_users[campaign_id]
                del self._locks[campaign_id]

    # ==========================================================================
    # Save
    # ==========================================================================

    async def save(self, campaign_id: str, snapshot: Snapshot, logger: LoggerProtocol | None = None) -> SaveResult:
        """
        Save a snapshot as the campaign's current save, demoting the previous one.

        Args:
            campaign_id: Campaign identifier
            snapshot: New snapshot (must belong to campaign_id)
            logger: Optional logger instance

        Returns:
            SaveResult; issues lists demotion/pruning problems that did not stop the save

        Raises:
            ValueError: If the snapshot belongs to a different campaign
            BackingStoreError: If the hot store cannot be read or written
        """
        if snapshot.campaign_id != campaign_id:
            raise ValueError(f'Snapshot belongs to campaign {snapshot.campaign_id!r}, not {campaign_id!r}')

        logger = logger or StdlibLogger(__name__)
        issues: list[SaveIssue] = []
        demoted: SaveMetadata | None = None
        evicted: tuple[int, ...] = ()

        async with self._campaign_lock(campaign_id):
            try:
                previous = await self.hot_store.get_current(campaign_id)
            except CorruptArchiveError as e:
                # An unreadable current save must not block every future save, nor be lost
                location = await self.hot_store.quarantine_current(campaign_id)
                moved = f', moved to {location}' if location else ''
                await logger.error(f'Current save for {campaign_id} is unreadable and will be replaced{moved}: {e}')
                issues.append(SaveIssue(stage='read', message=str(e), quarantined_to=location))
                previous = None

            if previous is not None:
                demoted, evicted = await self._demote(campaign_id, previous, issues, logger)

            await self.hot_store.put_current(campaign_id, snapshot)

        await logger.info(f"Saved '{snapshot.save_name}' as current for campaign {campaign_id}")
        if issues:
            await logger.warning(f'Save history for {campaign_id} degraded: {len(issues)} issue(s)')

        return SaveResult(
            campaign_id=campaign_id,
            saved_at=snapshot.timestamp,
            demoted=demoted,
            evicted=evicted,
            issues=issues,
        )

    async def _demote(
        self,
        campaign_id: str,
        previous: Snapshot,
        issues: list[SaveIssue],
        logger: LoggerProtocol,
    ) -> tuple[SaveMetadata | None, tuple[int, ...]]:
        """
        Move the previous current save into the cold archive.

        Never raises for store or codec failures; records them in issues.

        Returns:
            Tuple of (metadata of the archived entry or None, evicted timestamps)
        """
        timestamp = previous.timestamp

        try:
            data = self.codec.encode(previous)
        except Exception as e:
            await logger.error(f'Failed to encode save {timestamp} for archiving: {e}')
            issues.append(SaveIssue(stage='encode', message=str(e), timestamp=timestamp))
            return None, ()

        try:
            blob, content_type = self.codec.compress(data)
        except Exception as e:
            await logger.error(f'Failed to compress save {timestamp} for archiving: {e}')
            issues.append(SaveIssue(stage='compress', message=str(e), timestamp=timestamp))
            return None, ()

        # Prune before writing so the cap is never exceeded
        try:
            report = await self.retention.enforce(campaign_id, logger)
        except EvictionError as e:
            await logger.warning(str(e))
            issues.append(SaveIssue(stage='evict', message=str(e)))
            report = RetentionReport()
        except Exception as e:
            await logger.warning(f'Retention failed for {campaign_id}: {e}')
            issues.append(SaveIssue(stage='evict', message=str(e)))
            report = RetentionReport()

        for failure in report.failures:
            issues.append(SaveIssue(stage='evict', message=str(failure), timestamp=failure.timestamp))

        try:
            await self.cold_archive.put(
                campaign_id,
                timestamp,
                blob,
                content_type,
                {'saveName': previous.save_name, 'savedAt': str(timestamp)},
            )
        except Exception as e:
            await logger.error(f'Failed to archive save {timestamp} for {campaign_id}: {e}')
            issues.append(SaveIssue(stage='archive', message=str(e), timestamp=timestamp))
            return None, report.evicted

        await logger.info(
            f"Archived '{previous.save_name}' ({len(data):,} → {len(blob):,} bytes, {content_type}) for {campaign_id}"
        )
        demoted = SaveMetadata(
            save_name=previous.save_name,
            saved_at=timestamp,
            timestamp=timestamp,
            is_compressed=is_compressed_content_type(content_type),
            tier='cold',
        )
        return demoted, report.evicted

    # ==========================================================================
    # Load / List / Delete
    # ==========================================================================

    async def load(self, campaign_id: str, timestamp: int | None = None) -> Snapshot:
        """
        Load the current save or an archived one.

        Args:
            campaign_id: Campaign identifier
            timestamp: Archived save key (epoch ms); None loads the current save

        Returns:
            The snapshot

        Raises:
            NotFoundError: If the requested save does not exist
            CorruptArchiveError: If an archived blob cannot be decoded (it is left in place)
            BackingStoreError: If the store cannot be read
        """
        if timestamp is None:
            snapshot = await self.hot_store.get_current(campaign_id)
            if snapshot is None:
                raise NotFoundError(campaign_id)
            return snapshot

        blob, content_type = await self.cold_archive.get(campaign_id, timestamp)
        return self.codec.decode(blob, content_type)

    async def list_saves(self, campaign_id: str) -> list[SaveMetadata]:
        """
        List the current and archived saves of a campaign, newest first.

        On equal saved_at the current save sorts first, archived saves keep
        the archive's native order.

        Raises:
            BackingStoreError: If either tier cannot be read
        """
        saves: list[SaveMetadata] = []

        current = await self.hot_store.get_current(campaign_id)
        if current is not None:
            saves.append(
                SaveMetadata(
                    save_name=current.save_name,
                    saved_at=current.timestamp,
                    timestamp=current.timestamp,
                    is_compressed=False,
                    tier='hot',
                )
            )

        for entry in await self.cold_archive.list(campaign_id):
            saves.append(
                SaveMetadata(
                    save_name=entry.save_name,
                    saved_at=entry.saved_at,
                    timestamp=entry.timestamp,
                    is_compressed=is_compressed_content_type(entry.content_type),
                    tier='cold',
                )
            )

        # Stable sort: ties keep hot-before-cold and native archive order
        saves.sort(key=lambda save: save.saved_at, reverse=True)
        return saves

    async def delete_save(self, campaign_id: str, timestamp: int) -> None:
        """
        Delete one archived save. Deleting a missing save is not an error.

        Raises:
            BackingStoreError: If the delete fails
        """
        async with self._campaign_lock(campaign_id):
            await self.cold_archive.delete(campaign_id, timestamp)

    async def delete_campaign(self, campaign_id: str, logger: LoggerProtocol | None = None) -> int:
        """
        Remove every save of a campaign, archived and current.

        Archived entries go first so a failure leaves the current save intact.

        Returns:
            Number of archived entries deleted

        Raises:
            BackingStoreError: If any delete fails
        """
        logger = logger or StdlibLogger(__name__)
        async with self._campaign_lock(campaign_id):
            entries = await self.cold_archive.list(campaign_id)
            await asyncio.gather(*(self.cold_archive.delete(campaign_id, entry.timestamp) for entry in entries))
            await self.hot_store.remove_current(campaign_id)

        await logger.info(f'Deleted campaign {campaign_id}: {len(entries)} archived save(s) and current save')
        return len(entries)
