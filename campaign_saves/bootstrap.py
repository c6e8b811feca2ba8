"""
Runtime wiring.

Builds an immutable ArchiveContext from explicitly constructed settings. The
caller owns the context and passes it where it is needed; nothing here is
cached at module level.
"""

from __future__ import annotations

import attrs

from campaign_saves.config.storage import StorageSettings
from campaign_saves.services.archive import CampaignArchiveService
from campaign_saves.services.backup import BackupService
from campaign_saves.services.codec import SnapshotCodec, compressor_for
from campaign_saves.services.retention import RetentionPolicy
from campaign_saves.storage.firestore import FirestoreHotStore
from campaign_saves.storage.gcs import GcsColdArchive
from campaign_saves.storage.local import LocalFileSystemColdArchive, LocalFileSystemHotStore
from campaign_saves.storage.memory import InMemoryColdArchive, InMemoryHotStore
from campaign_saves.storage.protocol import ColdArchive, HotStore


@attrs.define(frozen=True)
class ArchiveContext:
    """
    Immutable runtime context.

    Contains the settings and every service built from them.
    """

    settings: StorageSettings
    codec: SnapshotCodec
    hot_store: HotStore
    cold_archive: ColdArchive
    archive_service: CampaignArchiveService
    backup_service: BackupService


def build_stores(settings: StorageSettings) -> tuple[HotStore, ColdArchive]:
    """Create the hot store and cold archive selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == 'memory':
        return InMemoryHotStore(), InMemoryColdArchive()

    if settings.STORAGE_BACKEND == 'local':
        settings.LOCAL_ROOT.mkdir(parents=True, exist_ok=True)
        return (
            LocalFileSystemHotStore(settings.LOCAL_ROOT),
            LocalFileSystemColdArchive(settings.LOCAL_ROOT, prefix=settings.STORAGE_PREFIX),
        )

    if settings.STORAGE_BACKEND == 'firebase':
        # Presence checked by StorageSettings validation
        assert settings.FIREBASE_PROJECT_ID and settings.FIREBASE_STORAGE_BUCKET and settings.FIREBASE_ACCESS_TOKEN
        return (
            FirestoreHotStore(
                project_id=settings.FIREBASE_PROJECT_ID,
                token=settings.FIREBASE_ACCESS_TOKEN,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            ),
            GcsColdArchive(
                bucket=settings.FIREBASE_STORAGE_BUCKET,
                token=settings.FIREBASE_ACCESS_TOKEN,
                prefix=settings.STORAGE_PREFIX,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            ),
        )

    raise ValueError(f'Unsupported storage backend: {settings.STORAGE_BACKEND}')


def build_context(settings: StorageSettings) -> ArchiveContext:
    """Wire codec, stores, retention and services from settings."""
    codec = SnapshotCodec(compressor_for(settings.COMPRESSION, settings.COMPRESSION_LEVEL))
    hot_store, cold_archive = build_stores(settings)

    archive_service = CampaignArchiveService(
        hot_store=hot_store,
        cold_archive=cold_archive,
        codec=codec,
        retention=RetentionPolicy(cold_archive, max_saves=settings.MAX_SAVES),
    )
    backup_service = BackupService(
        directory=settings.BACKUP_DIR,
        codec=codec,
        enabled=settings.BACKUP_ENABLED,
        compress=settings.BACKUP_COMPRESS,
        frequency_turns=settings.BACKUP_FREQUENCY_TURNS,
        max_backups=settings.BACKUP_MAX_FILES,
    )

    return ArchiveContext(
        settings=settings,
        codec=codec,
        hot_store=hot_store,
        cold_archive=cold_archive,
        archive_service=archive_service,
        backup_service=backup_service,
    )
