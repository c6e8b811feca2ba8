"""Tests for the Firestore hot store against an in-process fake of the REST API."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from campaign_saves.exceptions import BackingStoreError, CorruptArchiveError
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.services.archive import CampaignArchiveService
from campaign_saves.storage.firestore import FirestoreHotStore, decode_value, encode_value
from campaign_saves.storage.memory import InMemoryColdArchive

SnapshotFactory = Callable[..., Snapshot]

DOCUMENTS = '/v1/projects/demo/databases/(default)/documents'


class FakeFirestore:
    """Document store keyed by REST path; raw_bodies serves undecodable responses."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.raw_bodies: dict[str, bytes] = {}
        self.fail_status: int | None = None
        self.methods: list[str] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.methods.append(request.method)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={'error': {'status': 'PERMISSION_DENIED'}})

        path = request.url.path
        assert path.startswith(DOCUMENTS)
        if request.method == 'GET':
            if path in self.raw_bodies:
                return httpx.Response(200, content=self.raw_bodies[path])
            if path not in self.documents:
                return httpx.Response(404, json={'error': {'status': 'NOT_FOUND'}})
            return httpx.Response(200, json={'name': path, 'fields': self.documents[path]})
        if request.method == 'PATCH':
            self.raw_bodies.pop(path, None)
            self.documents[path] = json.loads(request.content)['fields']
            return httpx.Response(200, json={'name': path, 'fields': self.documents[path]})
        if request.method == 'DELETE':
            if path not in self.documents and path not in self.raw_bodies:
                return httpx.Response(404)
            self.documents.pop(path, None)
            self.raw_bodies.pop(path, None)
            return httpx.Response(200, json={})
        return httpx.Response(405)


def _store(fake: FakeFirestore) -> FirestoreHotStore:
    return FirestoreHotStore(project_id='demo', token='token-abc', transport=fake.transport())


@pytest.mark.parametrize(
    'value',
    [None, True, 0, -7, 2**40, 0.25, '', 'text', [], [1, 'a', None], {'nested': {'list': [{'x': 1.5}]}}],
)
def test_value_encoding_round_trip(value: Any) -> None:
    assert decode_value(encode_value(value)) == value


def test_integers_travel_as_strings() -> None:
    assert encode_value(42) == {'integerValue': '42'}
    assert encode_value(False) == {'booleanValue': False}


def test_unencodable_value() -> None:
    with pytest.raises(TypeError):
        encode_value(object())


def test_current_document_round_trip(snapshot_factory: SnapshotFactory) -> None:
    async def scenario() -> None:
        fake = FakeFirestore()
        store = _store(fake)
        first = snapshot_factory(1000)
        second = snapshot_factory(2000, stats=None)

        assert await store.get_current('c1') is None
        assert await store.put_current('c1', first) is None
        assert await store.put_current('c1', second) == first
        assert await store.get_current('c1') == second

        fields = fake.documents[f'{DOCUMENTS}/campaigns/c1/saves/current']
        assert fields['saveName'] == {'stringValue': second.save_name}
        assert fields['messageCount'] == {'integerValue': '17'}

    asyncio.run(scenario())


def test_remove_current_tolerates_missing(snapshot_factory: SnapshotFactory) -> None:
    async def scenario() -> None:
        fake = FakeFirestore()
        store = _store(fake)
        await store.put_current('c1', snapshot_factory(1000))

        await store.remove_current('c1')
        await store.remove_current('c1')

        assert await store.get_current('c1') is None

    asyncio.run(scenario())


def test_invalid_document_is_corrupt() -> None:
    async def scenario() -> None:
        fake = FakeFirestore()
        fake.documents[f'{DOCUMENTS}/campaigns/c1/saves/current'] = {'saveName': {'geoPointValue': {}}}

        with pytest.raises(CorruptArchiveError):
            await _store(fake).get_current('c1')

        fake.documents[f'{DOCUMENTS}/campaigns/c1/saves/current'] = {'saveName': {'stringValue': 'only'}}
        with pytest.raises(CorruptArchiveError):
            await _store(fake).get_current('c1')

    asyncio.run(scenario())


def test_permission_denied(snapshot_factory: SnapshotFactory) -> None:
    async def scenario() -> None:
        fake = FakeFirestore()
        fake.fail_status = 403
        store = _store(fake)

        with pytest.raises(BackingStoreError, match='HTTP 403'):
            await store.get_current('c1')
        with pytest.raises(BackingStoreError, match='HTTP 403'):
            await store.put_current('c1', snapshot_factory(1000))
        assert 'PATCH' not in fake.methods

    asyncio.run(scenario())


def _seed_damaged_current(fake: FakeFirestore, damage: str, snapshot: Snapshot) -> dict[str, Any]:
    """Put an undecodable current document in the fake; returns the fields it should be preserved as."""
    current = f'{DOCUMENTS}/campaigns/c1/saves/current'
    if damage == 'not-json':
        fake.raw_bodies[current] = b'{not json'
        return {'raw': {'stringValue': '{not json'}}
    document = snapshot.model_dump(mode='json', by_alias=True)
    document['version'] = 2
    fake.documents[current] = {name: encode_value(value) for name, value in document.items()}
    return dict(fake.documents[current])


@pytest.mark.parametrize('damage', ['not-json', 'newer-version'])
def test_save_over_unreadable_current_document(snapshot_factory: SnapshotFactory, damage: str) -> None:
    async def scenario() -> None:
        fake = FakeFirestore()
        preserved = _seed_damaged_current(fake, damage, snapshot_factory(1000))
        service = CampaignArchiveService(hot_store=_store(fake), cold_archive=InMemoryColdArchive())

        result = await service.save('c1', snapshot_factory(2000))

        [issue] = result.issues
        assert issue.stage == 'read'
        assert issue.quarantined_to.startswith('campaigns/c1/saves/corrupt-')
        assert fake.documents[f'{DOCUMENTS}/{issue.quarantined_to}'] == preserved
        assert await service.load('c1') == snapshot_factory(2000)

    asyncio.run(scenario())


@pytest.mark.parametrize('damage', ['not-json', 'newer-version'])
def test_put_current_moves_unreadable_document_aside(snapshot_factory: SnapshotFactory, damage: str) -> None:
    async def scenario() -> None:
        fake = FakeFirestore()
        preserved = _seed_damaged_current(fake, damage, snapshot_factory(1000))
        store = _store(fake)

        assert await store.put_current('c1', snapshot_factory(2000)) is None

        [aside] = [path for path in fake.documents if '/saves/corrupt-' in path]
        assert fake.documents[aside] == preserved
        assert await store.get_current('c1') == snapshot_factory(2000)

    asyncio.run(scenario())


def test_quarantine_current_without_document() -> None:
    fake = FakeFirestore()
    assert asyncio.run(_store(fake).quarantine_current('c1')) is None
    assert fake.methods == ['GET']
