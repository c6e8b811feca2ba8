"""Tests for settings and runtime wiring."""

from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from campaign_saves.bootstrap import build_context
from campaign_saves.config import StorageSettings, get_settings
from campaign_saves.services.codec import JSON_CONTENT_TYPE, ZSTD_CONTENT_TYPE
from campaign_saves.storage.firestore import FirestoreHotStore
from campaign_saves.storage.gcs import GcsColdArchive
from campaign_saves.storage.local import LocalFileSystemColdArchive, LocalFileSystemHotStore
from campaign_saves.storage.memory import InMemoryColdArchive, InMemoryHotStore


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ('LOAD_ENV_FILE', 'STORAGE_BACKEND', 'MAX_SAVES', 'LOCAL_ROOT', 'BACKUP_DIR', 'COMPRESSION'):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = get_settings(StorageSettings)

    assert settings.MAX_SAVES == 10
    assert settings.STORAGE_BACKEND == 'local'
    assert settings.COMPRESSION == 'zstd'
    assert settings.BACKUP_DIR is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv('MAX_SAVES', '4')
    monkeypatch.setenv('STORAGE_BACKEND', 'memory')
    monkeypatch.setenv('BACKUP_DIR', str(tmp_path))

    settings = get_settings(StorageSettings)

    assert settings.MAX_SAVES == 4
    assert settings.STORAGE_BACKEND == 'memory'
    assert settings.BACKUP_DIR == tmp_path


def test_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / 'saves.env'
    env_file.write_text('MAX_SAVES=3\nCOMPRESSION=none\n')

    settings = get_settings(StorageSettings, env_file=str(env_file))

    assert settings.MAX_SAVES == 3
    assert settings.COMPRESSION == 'none'


def test_missing_env_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        get_settings(StorageSettings, env_file=str(tmp_path / 'absent.env'))


@pytest.mark.parametrize(
    'overrides',
    [
        {'MAX_SAVES': 1},
        {'COMPRESSION_LEVEL': 0},
        {'BACKUP_MAX_FILES': 0},
        {'STORAGE_BACKEND': 'firebase', 'FIREBASE_PROJECT_ID': 'demo'},
        {'UNKNOWN_SETTING': 'x'},
    ],
    ids=['max-saves', 'compression-level', 'backup-files', 'firebase-incomplete', 'unknown'],
)
def test_invalid_settings_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(pydantic.ValidationError):
        StorageSettings(_env_file=None, **overrides)


def test_build_memory_context() -> None:
    context = build_context(StorageSettings(_env_file=None, STORAGE_BACKEND='memory', MAX_SAVES=4))

    assert isinstance(context.hot_store, InMemoryHotStore)
    assert isinstance(context.cold_archive, InMemoryColdArchive)
    assert context.archive_service.retention.max_saves == 4
    assert context.codec.content_type == ZSTD_CONTENT_TYPE
    assert not context.backup_service.configured


def test_build_local_context_creates_root(tmp_path: Path) -> None:
    root = tmp_path / 'store'
    context = build_context(
        StorageSettings(_env_file=None, STORAGE_BACKEND='local', LOCAL_ROOT=root, COMPRESSION='none', BACKUP_DIR=tmp_path)
    )

    assert root.is_dir()
    assert isinstance(context.hot_store, LocalFileSystemHotStore)
    assert isinstance(context.cold_archive, LocalFileSystemColdArchive)
    assert context.codec.content_type == JSON_CONTENT_TYPE
    assert context.backup_service.directory == tmp_path


def test_build_firebase_context() -> None:
    context = build_context(
        StorageSettings(
            _env_file=None,
            STORAGE_BACKEND='firebase',
            FIREBASE_PROJECT_ID='demo',
            FIREBASE_STORAGE_BUCKET='demo.appspot.com',
            FIREBASE_ACCESS_TOKEN='token',
            STORAGE_PREFIX='campaign-saves',
        )
    )

    assert isinstance(context.hot_store, FirestoreHotStore)
    assert isinstance(context.cold_archive, GcsColdArchive)
    assert context.cold_archive.prefix == 'campaign-saves'
    assert context.hot_store.project_id == 'demo'
