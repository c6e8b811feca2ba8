"""
Snapshot codec - serialization, compression and format detection.

Snapshots are serialized to UTF-8 JSON. Cold-tier blobs are compressed by a
compressor strategy chosen at construction time; when no compressor is
available the passthrough strategy stores plain JSON and labels it as such.

Decoding never trusts the label alone: magic bytes win over content type, and
anything that fails to decompress is retried as plain JSON before the blob is
declared corrupt. This covers legacy archives that were labelled gzip while
actually holding uncompressed JSON.
"""

from __future__ import annotations

import gzip
import json
import zlib
from typing import Literal, Protocol

import pydantic
import zstandard

from campaign_saves.exceptions import CorruptArchiveError, UnsupportedSnapshotVersionError
from campaign_saves.schemas.snapshot import SNAPSHOT_SCHEMA_VERSION, Snapshot

__all__ = [
    'Compressor',
    'PassthroughCompressor',
    'SnapshotCodec',
    'ZstdCompressor',
    'compressor_for',
    'is_compressed_content_type',
    'snapshot_from_document',
]

JSON_CONTENT_TYPE = 'application/json'
ZSTD_CONTENT_TYPE = 'application/zstd'

ZSTD_MAGIC = b'\x28\xb5\x2f\xfd'
GZIP_MAGIC = b'\x1f\x8b'

Frame = Literal['zstd', 'gzip']

# Content types that claim compression, mapped to the frame they claim
COMPRESSED_CONTENT_TYPES: dict[str, Frame] = {
    ZSTD_CONTENT_TYPE: 'zstd',
    'application/x-zstd': 'zstd',
    'application/gzip': 'gzip',
    'application/x-gzip': 'gzip',
}


# ==============================================================================
# Compressor Strategies
# ==============================================================================


class Compressor(Protocol):
    """Compression strategy injected into SnapshotCodec."""

    content_type: str

    def compress(self, data: bytes) -> bytes: ...


class ZstdCompressor:
    """Zstandard compression (the default for cold-tier blobs)."""

    content_type = ZSTD_CONTENT_TYPE

    def __init__(self, level: int = 3) -> None:
        self.level = level
        self._compressor = zstandard.ZstdCompressor(level=level)

    def compress(self, data: bytes) -> bytes:
        return self._compressor.compress(data)


class PassthroughCompressor:
    """No compression available - store plain JSON and say so in the content type."""

    content_type = JSON_CONTENT_TYPE

    def compress(self, data: bytes) -> bytes:
        return data


def is_compressed_content_type(content_type: str) -> bool:
    return content_type.split(';')[0].strip().lower() in COMPRESSED_CONTENT_TYPES


def compressor_for(name: Literal['zstd', 'none'], level: int = 3) -> Compressor:
    """Build the compressor strategy named in configuration."""
    if name == 'zstd':
        return ZstdCompressor(level=level)
    if name == 'none':
        return PassthroughCompressor()
    raise ValueError(f"Unsupported compression: '{name}'. Supported: ['none', 'zstd']")


# ==============================================================================
# Snapshot Codec
# ==============================================================================


class SnapshotCodec:
    """Encodes snapshots to blobs and decodes blobs (compressed or not) back to snapshots."""

    def __init__(self, compressor: Compressor | None = None) -> None:
        self.compressor: Compressor = compressor if compressor is not None else ZstdCompressor()

    @property
    def content_type(self) -> str:
        return self.compressor.content_type

    def encode(self, snapshot: Snapshot) -> bytes:
        """Serialize a snapshot to canonical UTF-8 JSON."""
        return snapshot.model_dump_json(by_alias=True).encode('utf-8')

    def compress(self, data: bytes) -> tuple[bytes, str]:
        """
        Compress encoded bytes with the configured strategy.

        Returns:
            Tuple of (blob, content_type). Tiny payloads may come out larger.
        """
        return self.compressor.compress(data), self.compressor.content_type

    def encode_compressed(self, snapshot: Snapshot) -> tuple[bytes, str]:
        """encode() followed by compress()."""
        return self.compress(self.encode(snapshot))

    def decode(self, blob: bytes, content_type: str | None = None) -> Snapshot:
        """
        Decode a blob into a snapshot.

        Args:
            blob: Compressed or plain encoded snapshot
            content_type: Content type recorded with the blob, if any

        Returns:
            Validated snapshot

        Raises:
            UnsupportedSnapshotVersionError: Snapshot written by a newer schema revision
            CorruptArchiveError: Neither the decompressed nor the plain bytes parse
        """
        failures: list[str] = []
        frame = self.detect_frame(blob, content_type)

        if frame is not None:
            try:
                return self._parse(self._decompress(blob, frame))
            except UnsupportedSnapshotVersionError:
                raise
            except (zstandard.ZstdError, OSError, EOFError, zlib.error) as e:
                failures.append(f'{frame} decompression failed: {e}')
            except CorruptArchiveError as e:
                failures.append(f'{frame} payload invalid: {e}')

        try:
            return self._parse(blob)
        except UnsupportedSnapshotVersionError:
            raise
        except CorruptArchiveError as e:
            failures.append(f'plain payload invalid: {e}')

        raise CorruptArchiveError(
            f'Unable to decode snapshot ({len(blob):,} bytes, content type {content_type!r}): ' + '; '.join(failures)
        )

    @staticmethod
    def detect_frame(blob: bytes, content_type: str | None = None) -> Frame | None:
        """
        Detect the compression frame of a blob.

        Magic bytes take precedence; the content type is only used as a hint
        when the bytes carry no recognizable header.
        """
        if blob.startswith(ZSTD_MAGIC):
            return 'zstd'
        if blob.startswith(GZIP_MAGIC):
            return 'gzip'
        if content_type is not None:
            return COMPRESSED_CONTENT_TYPES.get(content_type.split(';')[0].strip().lower())
        return None

    @staticmethod
    def is_compressed(blob: bytes) -> bool:
        return SnapshotCodec.detect_frame(blob) is not None

    def _decompress(self, blob: bytes, frame: Frame) -> bytes:
        if frame == 'zstd':
            # decompressobj copes with frames that omit the content size
            return zstandard.ZstdDecompressor().decompressobj().decompress(blob)
        return gzip.decompress(blob)

    def _parse(self, payload: bytes) -> Snapshot:
        try:
            raw = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptArchiveError(f'not JSON: {e}') from e

        return snapshot_from_document(raw)


def snapshot_from_document(raw: object) -> Snapshot:
    """
    Validate a decoded JSON document as a snapshot.

    Shared by the codec and the hot-store backends so every loader checks the
    schema version the same way.

    Raises:
        UnsupportedSnapshotVersionError: Document written by a newer schema revision
        CorruptArchiveError: Document is not a valid snapshot
    """
    if not isinstance(raw, dict):
        raise CorruptArchiveError(f'expected a JSON object, got {type(raw).__name__}')

    # Check the version before validating fields a newer schema may have changed
    version = raw.get('version')
    if isinstance(version, int) and version > SNAPSHOT_SCHEMA_VERSION:
        raise UnsupportedSnapshotVersionError(version, SNAPSHOT_SCHEMA_VERSION)

    try:
        return Snapshot.model_validate(raw)
    except pydantic.ValidationError as e:
        raise CorruptArchiveError(f'invalid snapshot: {e.error_count()} validation error(s): {e}') from e
