"""
Local filesystem storage backends.

Layout under the storage root:

    campaigns/{campaign_id}/current.json            hot tier (plain JSON)
    {prefix}/{campaign_id}/save_{ts}.json.zst       cold tier blob
    {prefix}/{campaign_id}/save_{ts}.json.zst.meta.json   content type + custom metadata

Every file is written to a unique temp file and renamed into place, so a
reader never sees a partial blob and writers of different keys never collide.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import re
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime

from filelock import FileLock

from campaign_saves.exceptions import BackingStoreError, CorruptArchiveError, NotFoundError
from campaign_saves.schemas.operations import ArchiveEntry
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.services.codec import snapshot_from_document
from campaign_saves.storage.protocol import archive_key, entry_from_metadata, safe_path_component
from campaign_saves.types import to_epoch_ms

__all__ = ['LocalFileSystemColdArchive', 'LocalFileSystemHotStore']

logger = logging.getLogger(__name__)

ARCHIVE_FILE_PATTERN = re.compile(r'^save_(\d+)\.json\.zst$')
METADATA_SUFFIX = '.meta.json'
UNKNOWN_CONTENT_TYPE = 'application/octet-stream'


def _require_directory(base_path: pathlib.Path) -> pathlib.Path:
    """Fail fast when the storage root is missing."""
    if not base_path.exists():
        raise ValueError(f'Storage path does not exist: {base_path}. Please create it first.')

    if not base_path.is_dir():
        raise ValueError(f'Storage path is not a directory: {base_path}')

    return base_path


def _atomic_write(path: pathlib.Path, data: bytes) -> None:
    """Write bytes to path via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = path.with_name(f'.{path.name}.{uuid.uuid4().hex}.tmp')
    try:
        tmp_file.write_bytes(data)
        os.replace(tmp_file, path)
    finally:
        tmp_file.unlink(missing_ok=True)


class LocalFileSystemHotStore:
    """Hot store keeping one current.json per campaign."""

    def __init__(self, base_path: pathlib.Path) -> None:
        """
        Initialize local hot store.

        Args:
            base_path: Storage root directory

        Raises:
            ValueError: If base_path doesn't exist (fail-fast)
        """
        self.base_path = _require_directory(base_path)

    def _current_path(self, campaign_id: str) -> pathlib.Path:
        return self.base_path / 'campaigns' / safe_path_component(campaign_id) / 'current.json'

    async def get_current(self, campaign_id: str) -> Snapshot | None:
        try:
            return self._read(self._current_path(campaign_id))
        except OSError as e:
            raise BackingStoreError(f'Failed to read current save for {campaign_id}: {e}') from e

    async def put_current(self, campaign_id: str, snapshot: Snapshot) -> Snapshot | None:
        path = self._current_path(campaign_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Lock covers read-previous + write so the returned snapshot is the one replaced
            with FileLock(path.with_suffix('.lock')):
                try:
                    previous = self._read(path)
                except CorruptArchiveError as e:
                    moved = self._move_aside(path)
                    logger.warning('Unreadable current save for %s moved to %s: %s', campaign_id, moved, e)
                    previous = None
                _atomic_write(path, snapshot.model_dump_json(by_alias=True, indent=2).encode('utf-8'))
        except OSError as e:
            raise BackingStoreError(f'Failed to write current save for {campaign_id}: {e}') from e

        logger.debug('Wrote current save for %s (%s)', campaign_id, snapshot.save_name)
        return previous

    async def remove_current(self, campaign_id: str) -> None:
        path = self._current_path(campaign_id)
        if not path.parent.exists():
            return  # Never saved
        try:
            with FileLock(path.with_suffix('.lock')):
                path.unlink(missing_ok=True)
        except OSError as e:
            raise BackingStoreError(f'Failed to remove current save for {campaign_id}: {e}') from e

    async def quarantine_current(self, campaign_id: str) -> str | None:
        path = self._current_path(campaign_id)
        if not path.parent.exists():
            return None
        try:
            with FileLock(path.with_suffix('.lock')):
                moved = self._move_aside(path)
        except OSError as e:
            raise BackingStoreError(f'Failed to move aside current save for {campaign_id}: {e}') from e
        return str(moved) if moved is not None else None

    @staticmethod
    def _move_aside(path: pathlib.Path) -> pathlib.Path | None:
        """Rename current.json to current.corrupt-<ms>-<id>.json; caller holds the lock."""
        if not path.exists():
            return None
        stamp = to_epoch_ms(datetime.now(UTC))
        target = path.with_name(f'{path.stem}.corrupt-{stamp}-{uuid.uuid4().hex[:8]}.json')
        os.replace(path, target)
        return target

    def _read(self, path: pathlib.Path) -> Snapshot | None:
        try:
            raw = json.loads(path.read_bytes())
        except FileNotFoundError:
            return None
        except ValueError as e:
            raise CorruptArchiveError(f'Current save at {path} is not valid JSON: {e}') from e
        return snapshot_from_document(raw)


class LocalFileSystemColdArchive:
    """
    Cold archive keeping one blob file plus a metadata sidecar per entry.

    Native listing order is ascending by file name.
    """

    def __init__(self, base_path: pathlib.Path, prefix: str = 'saves') -> None:
        """
        Initialize local cold archive.

        Args:
            base_path: Storage root directory
            prefix: Key prefix (sub-directory) for archive entries

        Raises:
            ValueError: If base_path doesn't exist (fail-fast)
        """
        self.base_path = _require_directory(base_path)
        self.prefix = prefix

    def _blob_path(self, campaign_id: str, timestamp: int) -> pathlib.Path:
        return self.base_path / archive_key(self.prefix, safe_path_component(campaign_id), timestamp)

    @staticmethod
    def _metadata_path(blob_path: pathlib.Path) -> pathlib.Path:
        return blob_path.with_name(blob_path.name + METADATA_SUFFIX)

    async def put(
        self,
        campaign_id: str,
        timestamp: int,
        blob: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        blob_path = self._blob_path(campaign_id, timestamp)
        sidecar = json.dumps({'contentType': content_type, 'customMetadata': dict(metadata)}, indent=2)
        try:
            # Sidecar first: a listed blob always has its metadata
            _atomic_write(self._metadata_path(blob_path), sidecar.encode('utf-8'))
            _atomic_write(blob_path, blob)
        except OSError as e:
            raise BackingStoreError(f'Failed to archive save {timestamp} for {campaign_id}: {e}') from e

        logger.debug('Archived %s (%d bytes, %s)', blob_path.name, len(blob), content_type)

    async def list(self, campaign_id: str) -> list[ArchiveEntry]:
        campaign_dir = self.base_path / self.prefix / safe_path_component(campaign_id)
        if not campaign_dir.exists():
            return []

        entries: list[ArchiveEntry] = []
        try:
            for blob_path in sorted(campaign_dir.iterdir()):
                match = ARCHIVE_FILE_PATTERN.match(blob_path.name)
                if not match:
                    continue
                content_type, metadata = self._read_sidecar(blob_path)
                entries.append(entry_from_metadata(campaign_id, int(match.group(1)), content_type, metadata))
        except OSError as e:
            raise BackingStoreError(f'Failed to list archive for {campaign_id}: {e}') from e

        return entries

    async def get(self, campaign_id: str, timestamp: int) -> tuple[bytes, str]:
        blob_path = self._blob_path(campaign_id, timestamp)
        try:
            blob = blob_path.read_bytes()
            content_type, _ = self._read_sidecar(blob_path)
        except FileNotFoundError:
            raise NotFoundError(campaign_id, timestamp) from None
        except OSError as e:
            raise BackingStoreError(f'Failed to read archived save {timestamp} for {campaign_id}: {e}') from e
        return blob, content_type

    async def delete(self, campaign_id: str, timestamp: int) -> None:
        blob_path = self._blob_path(campaign_id, timestamp)
        try:
            blob_path.unlink(missing_ok=True)
            self._metadata_path(blob_path).unlink(missing_ok=True)
        except OSError as e:
            raise BackingStoreError(f'Failed to delete archived save {timestamp} for {campaign_id}: {e}') from e

    def _read_sidecar(self, blob_path: pathlib.Path) -> tuple[str, dict[str, str]]:
        """Read content type and custom metadata; a missing or unreadable sidecar yields defaults."""
        try:
            sidecar = json.loads(self._metadata_path(blob_path).read_bytes())
        except FileNotFoundError:
            return UNKNOWN_CONTENT_TYPE, {}
        except json.JSONDecodeError:
            logger.warning('Ignoring unreadable metadata for %s', blob_path.name)
            return UNKNOWN_CONTENT_TYPE, {}

        metadata = sidecar.get('customMetadata') or {}
        return (
            str(sidecar.get('contentType') or UNKNOWN_CONTENT_TYPE),
            {str(k): str(v) for k, v in metadata.items()},
        )
