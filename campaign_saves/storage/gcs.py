"""
Cloud Storage cold archive.

Stores archived snapshots in a Firebase Storage bucket through the Google
Cloud Storage JSON API. Custom metadata (saveName, savedAt) travels with each
object so listings never need to download blobs.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from campaign_saves.exceptions import BackingStoreError, NotFoundError
from campaign_saves.schemas.operations import ArchiveEntry
from campaign_saves.storage.protocol import archive_key, entry_from_metadata

__all__ = ['GcsColdArchive']

logger = logging.getLogger(__name__)


class GcsColdArchive:
    """
    Cloud Storage cold archive backend.

    Native listing order is the API's lexicographic order of object names.
    """

    def __init__(
        self,
        bucket: str,
        token: str,
        prefix: str = 'saves',
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Cloud Storage archive.

        Args:
            bucket: Bucket name (e.g. 'my-app.appspot.com')
            token: OAuth2 access token with storage read/write scope
            prefix: Object name prefix for archive entries
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.bucket = bucket
        self.token = token
        self.prefix = prefix
        self.timeout = timeout
        self.transport = transport
        self.base_url = 'https://storage.googleapis.com/storage/v1'
        self.upload_url = 'https://storage.googleapis.com/upload/storage/v1'

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            timeout=self.timeout,
            headers={'Authorization': f'Bearer {self.token}'},
        )

    def _object_url(self, name: str) -> str:
        return f'{self.base_url}/b/{self.bucket}/o/{quote(name, safe="")}'

    async def put(
        self,
        campaign_id: str,
        timestamp: int,
        blob: bytes,
        content_type: str,
        metadata: Mapping[str, str],
    ) -> None:
        name = archive_key(self.prefix, campaign_id, timestamp)
        resource = {'name': name, 'contentType': content_type, 'metadata': dict(metadata)}

        # multipart/related: JSON resource part, then media part
        boundary = uuid.uuid4().hex
        body = (
            (
                f'--{boundary}\r\n'
                'Content-Type: application/json; charset=UTF-8\r\n\r\n'
                f'{json.dumps(resource)}\r\n'
                f'--{boundary}\r\n'
                f'Content-Type: {content_type}\r\n\r\n'
            ).encode('utf-8')
            + blob
            + f'\r\n--{boundary}--\r\n'.encode('utf-8')
        )

        async with self._client() as client:
            response = await self._send(
                client,
                'POST',
                f'{self.upload_url}/b/{self.bucket}/o',
                params={'uploadType': 'multipart'},
                content=body,
                headers={'Content-Type': f'multipart/related; boundary={boundary}'},
            )
            self._check(response, f'upload {name}')

        logger.debug('Uploaded %s (%d bytes, %s)', name, len(blob), content_type)

    async def list(self, campaign_id: str) -> list[ArchiveEntry]:
        folder = f'{self.prefix}/{campaign_id}/'
        entries: list[ArchiveEntry] = []
        page_token: str | None = None

        async with self._client() as client:
            while True:
                params = {'prefix': folder, 'delimiter': '/'}
                if page_token:
                    params['pageToken'] = page_token
                response = await self._send(client, 'GET', f'{self.base_url}/b/{self.bucket}/o', params=params)
                self._check(response, f'list {folder}')

                payload = response.json()
                for item in payload.get('items', []):
                    entry = self._entry_from_item(campaign_id, folder, item)
                    if entry is not None:
                        entries.append(entry)

                page_token = payload.get('nextPageToken')
                if not page_token:
                    break

        return entries

    async def get(self, campaign_id: str, timestamp: int) -> tuple[bytes, str]:
        name = archive_key(self.prefix, campaign_id, timestamp)
        async with self._client() as client:
            response = await self._send(client, 'GET', self._object_url(name), params={'alt': 'media'})
            if response.status_code == 404:
                raise NotFoundError(campaign_id, timestamp)
            self._check(response, f'download {name}')

        content_type = response.headers.get('Content-Type', 'application/octet-stream')
        return response.content, content_type

    async def delete(self, campaign_id: str, timestamp: int) -> None:
        name = archive_key(self.prefix, campaign_id, timestamp)
        async with self._client() as client:
            response = await self._send(client, 'DELETE', self._object_url(name))
            if response.status_code == 404:
                return  # Already absent
            self._check(response, f'delete {name}')

    @staticmethod
    def _entry_from_item(campaign_id: str, folder: str, item: Mapping[str, Any]) -> ArchiveEntry | None:
        """Map a listed object to an ArchiveEntry; objects not named save_<ts>.json.zst are skipped."""
        filename = str(item.get('name', ''))[len(folder) :]
        if not (filename.startswith('save_') and filename.endswith('.json.zst')):
            return None
        try:
            timestamp = int(filename[len('save_') : -len('.json.zst')])
        except ValueError:
            return None
        metadata = {str(k): str(v) for k, v in (item.get('metadata') or {}).items()}
        return entry_from_metadata(
            campaign_id, timestamp, str(item.get('contentType') or 'application/octet-stream'), metadata
        )

    @staticmethod
    async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BackingStoreError(f'Cloud Storage request failed ({method} {url}): {e}') from e

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        raise BackingStoreError(f'Cloud Storage {action} failed: HTTP {response.status_code}: {response.text[:200]}')
