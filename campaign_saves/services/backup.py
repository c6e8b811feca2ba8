"""
Snapshot file export and auto-backup.

Writes snapshots to a user-chosen folder as backup_{campaign_id}_{ms}.json
(or .json.zst when compressed), every N turns, keeping only the newest few
backups per campaign. The last backup turn per campaign is kept in a small
state file guarded by filelock so several game processes can share a folder.
"""

from __future__ import annotations

import json
import os
import re
import uuid
from datetime import UTC, datetime
from pathlib import Path

from filelock import FileLock

from campaign_saves.exceptions import BackupError
from campaign_saves.protocols import LoggerProtocol, StdlibLogger
from campaign_saves.schemas.operations import BackupResult
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.services.codec import JSON_CONTENT_TYPE, ZSTD_CONTENT_TYPE, SnapshotCodec
from campaign_saves.storage.protocol import safe_path_component
from campaign_saves.types import to_epoch_ms

__all__ = ['BackupService']

BACKUP_NAME_PATTERN = re.compile(r'^(\d+)\.json(\.zst)?$')
STATE_FILENAME = '.backup-state.json'


def _now_ms() -> int:
    return to_epoch_ms(datetime.now(UTC))


class BackupService:
    """Service for exporting snapshots to files and running periodic auto-backups."""

    def __init__(
        self,
        directory: Path | None,
        codec: SnapshotCodec | None = None,
        enabled: bool = True,
        compress: bool = True,
        frequency_turns: int = 10,
        max_backups: int = 3,
    ) -> None:
        """
        Initialize backup service.

        Args:
            directory: Backup folder (None = not configured)
            codec: Snapshot codec used for compressed exports
            enabled: Whether automatic backups run
            compress: Compress backup files with the codec's compressor
            frequency_turns: Turns between automatic backups
            max_backups: Backup files kept per campaign
        """
        self.directory = directory
        self.codec = codec or SnapshotCodec()
        self.enabled = enabled
        self.compress = compress
        self.frequency_turns = frequency_turns
        self.max_backups = max_backups

    @property
    def configured(self) -> bool:
        return self.directory is not None

    # ==========================================================================
    # Export / Import
    # ==========================================================================

    def export_snapshot(self, snapshot: Snapshot, directory: Path, compress: bool = False) -> Path:
        """
        Write a snapshot to a file in directory.

        Plain exports are indented JSON; compressed exports use the codec's
        compressor and get a .zst suffix only when actually compressed.

        Returns:
            Path of the written file

        Raises:
            BackupError: If the directory is missing or the file cannot be written
            ValueError: If the campaign id is not a valid file name
        """
        if not directory.is_dir():
            raise BackupError(f'Backup directory does not exist: {directory}. Please create it first.')

        if compress:
            data, content_type = self.codec.encode_compressed(snapshot)
        else:
            data, content_type = snapshot.model_dump_json(by_alias=True, indent=2).encode('utf-8'), JSON_CONTENT_TYPE

        suffix = '.json.zst' if content_type == ZSTD_CONTENT_TYPE else '.json'
        prefix = f'backup_{safe_path_component(snapshot.campaign_id)}_'
        stamp = _now_ms()
        # Same-millisecond exports take the next free stamp instead of replacing each other
        while (directory / f'{prefix}{stamp}.json').exists() or (directory / f'{prefix}{stamp}.json.zst').exists():
            stamp += 1
        path = directory / f'{prefix}{stamp}{suffix}'

        tmp_file = path.with_name(f'.{path.name}.{uuid.uuid4().hex}.tmp')
        try:
            tmp_file.write_bytes(data)
            os.replace(tmp_file, path)
        except OSError as e:
            raise BackupError(f'Failed to write backup {path}: {e}') from e
        finally:
            tmp_file.unlink(missing_ok=True)

        return path

    def import_snapshot(self, path: Path) -> Snapshot:
        """
        Read a snapshot file written by export_snapshot (or any plain/compressed snapshot JSON).

        Raises:
            BackupError: If the file cannot be read
            CorruptArchiveError: If the content is not a valid snapshot
        """
        try:
            data = path.read_bytes()
        except OSError as e:
            raise BackupError(f'Failed to read backup {path}: {e}') from e
        content_type = ZSTD_CONTENT_TYPE if path.name.endswith('.zst') else JSON_CONTENT_TYPE
        return self.codec.decode(data, content_type)

    # ==========================================================================
    # Auto-backup
    # ==========================================================================

    def should_backup(self, campaign_id: str, current_turn: int) -> bool:
        """True when auto-backup is on and frequency_turns have passed since the last backup."""
        if not self.enabled or self.directory is None:
            return False
        return current_turn - self.last_backup_turn(campaign_id) >= self.frequency_turns

    def last_backup_turn(self, campaign_id: str) -> int:
        if self.directory is None:
            return 0
        return int(self._read_state().get(campaign_id, 0))

    async def perform_backup(
        self,
        campaign_id: str,
        snapshot: Snapshot,
        current_turn: int,
        logger: LoggerProtocol | None = None,
    ) -> BackupResult:
        """
        Write a backup file, record the turn, then prune old backups.

        Pruning is best-effort: a failure is logged and reported in the result.

        Raises:
            BackupError: If backups are not configured or the file cannot be written
            ValueError: If the snapshot belongs to a different campaign or its id is not a valid file name
        """
        if snapshot.campaign_id != campaign_id:
            raise ValueError(f'Snapshot belongs to campaign {snapshot.campaign_id!r}, not {campaign_id!r}')

        logger = logger or StdlibLogger(__name__)

        if self.directory is None:
            raise BackupError('Auto-backup not configured: no backup directory set')

        path = self.export_snapshot(snapshot, self.directory, compress=self.compress)
        await logger.info(f'Backup written: {path}')

        self._record_turn(campaign_id, current_turn)

        pruned: list[str] = []
        prune_error: str | None = None
        try:
            pruned = self._prune(campaign_id)
        except OSError as e:
            prune_error = str(e)
            await logger.warning(f'Backup cleanup failed for {campaign_id}: {e}')

        if pruned:
            await logger.info(f'Removed {len(pruned)} old backup(s) for {campaign_id}')

        return BackupResult(
            file_path=str(path),
            campaign_id=campaign_id,
            backed_up_at=datetime.now(UTC),
            compressed=path.name.endswith('.zst'),
            size_bytes=path.stat().st_size,
            turn=current_turn,
            pruned=pruned,
            prune_error=prune_error,
        )

    async def manual_backup(
        self, campaign_id: str, snapshot: Snapshot, logger: LoggerProtocol | None = None
    ) -> BackupResult:
        """Back up now regardless of the turn frequency."""
        if self.directory is None:
            raise BackupError('Please select a backup folder first')
        return await self.perform_backup(campaign_id, snapshot, self.last_backup_turn(campaign_id), logger)

    def _prune(self, campaign_id: str) -> list[str]:
        """Delete all but the newest max_backups files of a campaign."""
        assert self.directory is not None
        prefix = f'backup_{campaign_id}_'

        backups: list[tuple[int, Path]] = []
        for path in self.directory.iterdir():
            if not path.name.startswith(prefix):
                continue
            match = BACKUP_NAME_PATTERN.match(path.name[len(prefix) :])
            if match:
                backups.append((int(match.group(1)), path))

        backups.sort(key=lambda item: item[0], reverse=True)
        removed = []
        for _, path in backups[self.max_backups :]:
            path.unlink(missing_ok=True)
            removed.append(path.name)
        return removed

    # ==========================================================================
    # State file
    # ==========================================================================

    def _state_path(self) -> Path:
        assert self.directory is not None
        return self.directory / STATE_FILENAME

    def _read_state(self) -> dict[str, int]:
        try:
            raw = json.loads(self._state_path().read_text())
            return {str(k): int(v) for k, v in raw.items()}
        except FileNotFoundError:
            return {}
        except (ValueError, TypeError, AttributeError, OSError):
            return {}  # Unreadable state: next backup rewrites it

    def _record_turn(self, campaign_id: str, turn: int) -> None:
        state_path = self._state_path()
        try:
            with FileLock(state_path.with_suffix('.lock')):
                state = self._read_state()
                state[campaign_id] = turn
                tmp_file = state_path.with_suffix('.tmp')
                tmp_file.write_text(json.dumps(state, indent=2))
                tmp_file.rename(state_path)
        except OSError as e:
            raise BackupError(f'Failed to record backup turn for {campaign_id}: {e}') from e
