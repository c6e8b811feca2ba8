"""
Retention policy for the cold archive.

Keeps at most MAX_SAVES - 1 archived entries per campaign (the current hot
save is the remaining generation). Enforcement runs before a demoted entry is
written, making room for it, so the cap is never exceeded.

Eviction is best-effort: a failed delete is reported, never raised, because
the next save retries the cleanup while a lost save cannot be recovered.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import attrs

from campaign_saves.exceptions import CampaignSaveError, EvictionError
from campaign_saves.protocols import LoggerProtocol, NullLogger
from campaign_saves.schemas.operations import ArchiveEntry
from campaign_saves.storage.protocol import ColdArchive

__all__ = ['RetentionPolicy', 'RetentionReport', 'select_evictions']


@attrs.define(frozen=True)
class RetentionReport:
    """What one enforcement pass removed and what it failed to remove."""

    evicted: tuple[int, ...] = ()
    failures: tuple[EvictionError, ...] = ()


def select_evictions(entries: Sequence[ArchiveEntry], max_saves: int) -> list[ArchiveEntry]:
    """
    Pick the entries to delete so one more entry fits under the cap.

    When len(entries) >= max_saves - 1, the oldest len(entries) - (max_saves - 2)
    entries by saved_at are selected. sorted() is stable, so entries with equal
    saved_at keep the archive's native listing order and the earlier-listed one
    is evicted first.
    """
    if len(entries) < max_saves - 1:
        return []
    overflow = len(entries) - (max_saves - 2)
    return sorted(entries, key=lambda entry: entry.saved_at)[:overflow]


class RetentionPolicy:
    """Bounds the number of archived saves per campaign, evicting oldest first."""

    def __init__(self, archive: ColdArchive, max_saves: int = 10) -> None:
        """
        Initialize retention policy.

        Args:
            archive: Cold archive to prune
            max_saves: Total generations per campaign (current + archived)
        """
        if max_saves < 2:
            raise ValueError('max_saves must be at least 2')
        self.archive = archive
        self.max_saves = max_saves

    @property
    def max_archived(self) -> int:
        return self.max_saves - 1

    async def enforce(self, campaign_id: str, logger: LoggerProtocol | None = None) -> RetentionReport:
        """
        Make room for one more archived entry.

        Deletes run concurrently; they target independent keys.

        Args:
            campaign_id: Campaign whose archive is pruned
            logger: Optional logger instance

        Returns:
            RetentionReport with evicted timestamps and per-entry failures

        Raises:
            EvictionError: If the archive cannot be listed
        """
        logger = logger or NullLogger()

        try:
            entries = await self.archive.list(campaign_id)
        except CampaignSaveError as e:
            raise EvictionError(campaign_id, None, str(e)) from e

        doomed = select_evictions(entries, self.max_saves)
        if not doomed:
            return RetentionReport()

        await logger.info(
            f'Archive for {campaign_id} holds {len(entries)} entries (limit {self.max_archived}); '
            f'evicting {len(doomed)} oldest'
        )

        results = await asyncio.gather(
            *(self.archive.delete(campaign_id, entry.timestamp) for entry in doomed),
            return_exceptions=True,
        )

        evicted: list[int] = []
        failures: list[EvictionError] = []
        for entry, result in zip(doomed, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result  # Cancellation and interpreter exits propagate
                failure = EvictionError(campaign_id, entry.timestamp, str(result))
                failure.__cause__ = result
                failures.append(failure)
                await logger.warning(str(failure))
            else:
                evicted.append(entry.timestamp)

        return RetentionReport(evicted=tuple(evicted), failures=tuple(failures))
