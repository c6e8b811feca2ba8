"""
Pydantic schemas for campaign-saves.

Snapshot is the unit of persistence; operations/ holds the result models
returned by services.
"""

from __future__ import annotations

from campaign_saves.schemas.snapshot import (
    MAX_LAST_MESSAGES,
    SNAPSHOT_SCHEMA_VERSION,
    Snapshot,
    SnapshotStats,
)

__all__ = [
    'MAX_LAST_MESSAGES',
    'SNAPSHOT_SCHEMA_VERSION',
    'Snapshot',
    'SnapshotStats',
]
