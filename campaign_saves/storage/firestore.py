"""
Firestore hot store.

Keeps the current snapshot of each campaign as the structured document
campaigns/{campaign_id}/saves/current, via the Firestore REST API. The
document is stored field by field (not as a blob) so it stays readable and
queryable from the console and other clients.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

import httpx

from campaign_saves.exceptions import BackingStoreError, CorruptArchiveError
from campaign_saves.schemas.snapshot import Snapshot
from campaign_saves.services.codec import snapshot_from_document
from campaign_saves.types import to_epoch_ms

__all__ = ['FirestoreHotStore', 'decode_value', 'encode_value']

logger = logging.getLogger(__name__)


# ==============================================================================
# Firestore Value Encoding
# ==============================================================================


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a JSON-compatible Python value as a Firestore Value."""
    if value is None:
        return {'nullValue': None}
    if isinstance(value, bool):
        return {'booleanValue': value}
    if isinstance(value, int):
        return {'integerValue': str(value)}  # int64 travels as a string
    if isinstance(value, float):
        return {'doubleValue': value}
    if isinstance(value, str):
        return {'stringValue': value}
    if isinstance(value, (list, tuple)):
        return {'arrayValue': {'values': [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {'mapValue': {'fields': {str(k): encode_value(v) for k, v in value.items()}}}
    raise TypeError(f'Cannot encode {type(value).__name__} as a Firestore value')


def decode_value(value: dict[str, Any]) -> Any:
    """Decode a Firestore Value into a JSON-compatible Python value."""
    if 'nullValue' in value:
        return None
    if 'booleanValue' in value:
        return bool(value['booleanValue'])
    if 'integerValue' in value:
        return int(value['integerValue'])
    if 'doubleValue' in value:
        return float(value['doubleValue'])
    if 'stringValue' in value:
        return value['stringValue']
    if 'timestampValue' in value:
        return value['timestampValue']  # RFC 3339 string, parsed by the schema
    if 'arrayValue' in value:
        return [decode_value(v) for v in value['arrayValue'].get('values', [])]
    if 'mapValue' in value:
        return decode_fields(value['mapValue'].get('fields', {}))
    raise ValueError(f'Unsupported Firestore value: {sorted(value)}')


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {name: decode_value(v) for name, v in fields.items()}


# ==============================================================================
# Hot Store
# ==============================================================================


class FirestoreHotStore:
    """
    Firestore hot store backend.

    put_current reads then writes without a transaction: concurrent writers
    from other devices get last-writer-wins on the current slot.
    """

    def __init__(
        self,
        project_id: str,
        token: str,
        database: str = '(default)',
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Firestore hot store.

        Args:
            project_id: Firebase / GCP project id
            token: OAuth2 access token with datastore scope
            database: Firestore database id
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.project_id = project_id
        self.token = token
        self.database = database
        self.timeout = timeout
        self.transport = transport
        self.base_url = f'https://firestore.googleapis.com/v1/projects/{project_id}/databases/{database}/documents'

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=self.timeout,
            headers={'Authorization': f'Bearer {self.token}'},
        )

    def _document_url(self, campaign_id: str) -> str:
        return f'{self.base_url}/campaigns/{campaign_id}/saves/current'

    async def get_current(self, campaign_id: str) -> Snapshot | None:
        async with self._client() as client:
            return await self._fetch(client, campaign_id)

    async def put_current(self, campaign_id: str, snapshot: Snapshot) -> Snapshot | None:
        document = snapshot.model_dump(mode='json', by_alias=True)
        fields = {name: encode_value(value) for name, value in document.items()}

        async with self._client() as client:
            try:
                previous = await self._fetch(client, campaign_id)
            except CorruptArchiveError as e:
                moved = await self._move_aside(client, campaign_id)
                logger.warning('Unreadable current save for %s moved to %s: %s', campaign_id, moved, e)
                previous = None
            response = await self._send(client, 'PATCH', self._document_url(campaign_id), json={'fields': fields})
            self._check(response, f'write current save for {campaign_id}')

        logger.debug('Wrote current save for %s (%s)', campaign_id, snapshot.save_name)
        return previous

    async def remove_current(self, campaign_id: str) -> None:
        async with self._client() as client:
            response = await self._send(client, 'DELETE', self._document_url(campaign_id))
            if response.status_code == 404:
                return
            self._check(response, f'remove current save for {campaign_id}')

    async def quarantine_current(self, campaign_id: str) -> str | None:
        async with self._client() as client:
            return await self._move_aside(client, campaign_id)

    async def _move_aside(self, client: httpx.AsyncClient, campaign_id: str) -> str | None:
        """Copy the current document's raw fields to saves/corrupt-<ms>-<id>, then delete current."""
        response = await self._send(client, 'GET', self._document_url(campaign_id))
        if response.status_code == 404:
            return None
        self._check(response, f'read current save for {campaign_id}')
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            fields = body.get('fields', {})
        else:
            fields = {'raw': {'stringValue': response.text}}

        stamp = to_epoch_ms(datetime.now(UTC))
        document = f'campaigns/{campaign_id}/saves/corrupt-{stamp}-{uuid.uuid4().hex[:8]}'
        response = await self._send(client, 'PATCH', f'{self.base_url}/{document}', json={'fields': fields})
        self._check(response, f'move aside current save for {campaign_id}')

        response = await self._send(client, 'DELETE', self._document_url(campaign_id))
        if response.status_code != 404:
            self._check(response, f'remove unreadable current save for {campaign_id}')
        return document

    async def _fetch(self, client: httpx.AsyncClient, campaign_id: str) -> Snapshot | None:
        response = await self._send(client, 'GET', self._document_url(campaign_id))
        if response.status_code == 404:
            return None
        self._check(response, f'read current save for {campaign_id}')

        try:
            document = decode_fields(response.json().get('fields', {}))
        except (ValueError, AttributeError) as e:
            raise CorruptArchiveError(f'Current save for {campaign_id} is not a valid document: {e}') from e
        return snapshot_from_document(document)

    @staticmethod
    async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BackingStoreError(f'Firestore request failed ({method} {url}): {e}') from e

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        raise BackingStoreError(f'Firestore {action} failed: HTTP {response.status_code}: {response.text[:200]}')
