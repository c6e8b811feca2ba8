"""Tests for file export, import and auto-backup."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import pytest

from campaign_saves.exceptions import BackupError, CorruptArchiveError
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.services.backup import BackupService
from campaign_saves.services.codec import PassthroughCompressor, SnapshotCodec

SnapshotFactory = Callable[..., Snapshot]


def test_export_plain_is_readable_json(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    service = BackupService(tmp_path)
    snapshot = snapshot_factory(1000)

    path = service.export_snapshot(snapshot, tmp_path)

    assert path.name.startswith('backup_c1_')
    assert path.suffix == '.json'
    assert json.loads(path.read_text())['campaignId'] == 'c1'
    assert service.import_snapshot(path) == snapshot
    assert [p.name for p in tmp_path.iterdir()] == [path.name]  # No temp files left behind


def test_export_compressed(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    service = BackupService(tmp_path)
    snapshot = snapshot_factory(1000)

    path = service.export_snapshot(snapshot, tmp_path, compress=True)

    assert path.name.endswith('.json.zst')
    assert path.read_bytes().startswith(b'\x28\xb5\x2f\xfd')
    assert service.import_snapshot(path) == snapshot


def test_compressed_export_without_compressor_stays_plain(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    service = BackupService(tmp_path, codec=SnapshotCodec(PassthroughCompressor()))

    path = service.export_snapshot(snapshot_factory(1000), tmp_path, compress=True)

    assert path.name.endswith('.json')
    assert not path.name.endswith('.zst')


def test_export_to_missing_directory(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    with pytest.raises(BackupError, match='does not exist'):
        BackupService(tmp_path).export_snapshot(snapshot_factory(1000), tmp_path / 'nope')


def test_exports_in_same_millisecond_get_distinct_files(
    tmp_path: Path, snapshot_factory: SnapshotFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr('campaign_saves.services.backup._now_ms', lambda: 5000)
    service = BackupService(tmp_path)
    first, second = snapshot_factory(1000, 'First'), snapshot_factory(2000, 'Second')

    paths = [
        service.export_snapshot(first, tmp_path),
        service.export_snapshot(second, tmp_path),
        service.export_snapshot(second, tmp_path, compress=True),
    ]

    assert [path.name for path in paths] == ['backup_c1_5000.json', 'backup_c1_5001.json', 'backup_c1_5002.json.zst']
    assert service.import_snapshot(paths[0]) == first
    assert service.import_snapshot(paths[1]) == second


def test_export_rejects_campaign_id_unsafe_as_file_name(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    folder = tmp_path / 'backups'
    folder.mkdir()

    with pytest.raises(ValueError, match='Invalid campaign id'):
        BackupService(folder).export_snapshot(snapshot_factory(1000, campaign_id='../escape'), folder)

    assert list(tmp_path.rglob('backup_*')) == []


def test_import_errors(tmp_path: Path) -> None:
    service = BackupService(tmp_path)

    with pytest.raises(BackupError):
        service.import_snapshot(tmp_path / 'missing.json')

    bad = tmp_path / 'bad.json'
    bad.write_text('{"not": "a snapshot"}')
    with pytest.raises(CorruptArchiveError):
        service.import_snapshot(bad)


def test_should_backup_follows_turn_frequency(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    service = BackupService(tmp_path, frequency_turns=10)

    assert not service.should_backup('c1', 9)
    assert service.should_backup('c1', 10)

    asyncio.run(service.perform_backup('c1', snapshot_factory(1000), 10))

    assert service.last_backup_turn('c1') == 10
    assert not service.should_backup('c1', 19)
    assert service.should_backup('c1', 20)
    assert service.should_backup('c2', 10)  # Tracked per campaign


def test_should_backup_when_disabled_or_unconfigured(tmp_path: Path) -> None:
    assert not BackupService(tmp_path, enabled=False).should_backup('c1', 100)
    assert not BackupService(None).should_backup('c1', 100)
    assert not BackupService(None).configured


def test_perform_backup_prunes_oldest(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    for stamp in (1000, 2000, 3000):
        (tmp_path / f'backup_c1_{stamp}.json.zst').write_bytes(b'old')
    (tmp_path / 'backup_c10_500.json').write_text('{}')  # Different campaign sharing the prefix
    (tmp_path / 'notes.txt').write_text('keep me')

    service = BackupService(tmp_path, max_backups=3)
    result = asyncio.run(service.perform_backup('c1', snapshot_factory(5000), 10))

    assert list(result.pruned) == ['backup_c1_1000.json.zst']
    assert result.prune_error is None
    assert result.compressed
    assert result.turn == 10
    assert result.size_bytes > 0

    remaining = sorted(p.name for p in tmp_path.iterdir() if not p.name.startswith('.'))
    assert Path(result.file_path).name in remaining
    assert 'backup_c1_1000.json.zst' not in remaining
    assert {'backup_c1_2000.json.zst', 'backup_c1_3000.json.zst', 'backup_c10_500.json', 'notes.txt'} <= set(
        remaining
    )


def test_perform_backup_requires_directory(snapshot_factory: SnapshotFactory) -> None:
    with pytest.raises(BackupError, match='not configured'):
        asyncio.run(BackupService(None).perform_backup('c1', snapshot_factory(1000), 10))


def test_perform_backup_rejects_snapshot_of_another_campaign(
    tmp_path: Path, snapshot_factory: SnapshotFactory
) -> None:
    service = BackupService(tmp_path)

    with pytest.raises(ValueError, match='belongs to campaign'):
        asyncio.run(service.perform_backup('c1', snapshot_factory(1000, campaign_id='c2'), 10))

    assert list(tmp_path.iterdir()) == []
    assert service.last_backup_turn('c1') == 0


def test_manual_backup_keeps_last_turn(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    async def scenario() -> None:
        service = BackupService(tmp_path, compress=False)
        await service.perform_backup('c1', snapshot_factory(1000), 30)

        result = await service.manual_backup('c1', snapshot_factory(2000))

        assert result.turn == 30
        assert not result.compressed
        assert service.last_backup_turn('c1') == 30

    asyncio.run(scenario())


def test_manual_backup_requires_directory(snapshot_factory: SnapshotFactory) -> None:
    with pytest.raises(BackupError, match='backup folder'):
        asyncio.run(BackupService(None).manual_backup('c1', snapshot_factory(1000)))


def test_unreadable_state_file_is_rewritten(tmp_path: Path, snapshot_factory: SnapshotFactory) -> None:
    (tmp_path / '.backup-state.json').write_text('not json')
    service = BackupService(tmp_path)

    assert service.last_backup_turn('c1') == 0

    asyncio.run(service.perform_backup('c1', snapshot_factory(1000), 12))
    assert json.loads((tmp_path / '.backup-state.json').read_text()) == {'c1': 12}
