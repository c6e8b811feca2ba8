"""Shared fixtures for campaign-saves tests."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from campaign_saves.schemas.snapshot import Snapshot, SnapshotStats
from campaign_saves.types import from_epoch_ms

SnapshotFactory = Callable[..., Snapshot]


def build_snapshot(
    timestamp: int,
    save_name: str | None = None,
    campaign_id: str = 'c1',
    **overrides: object,
) -> Snapshot:
    """Snapshot with realistic opaque payloads, created at the given epoch ms."""
    fields: dict[str, object] = {
        'save_name': save_name or f'Save at {timestamp}',
        'created_at': from_epoch_ms(timestamp),
        'campaign_id': campaign_id,
        'campaign_name': 'The Sunken Crown',
        'world_type': 'classic',
        'character': {'name': 'Aria', 'class': 'Ranger', 'hp': 12, 'inventory': ['bow', 'rope']},
        'module_state': {
            'questLog': [{'id': 'q1', 'title': 'Find the crown', 'done': False}],
            'gold': 42,
            'reputation': 0.75,
        },
        'last_messages': [
            {'id': 'm1', 'role': 'user', 'content': 'I open the door.'},
            {'id': 'm2', 'role': 'assistant', 'content': 'The hinges scream.'},
        ],
        'message_count': 17,
        'stats': SnapshotStats(total_turns=9, play_time_seconds=1830.5),
    }
    fields.update(overrides)
    return Snapshot(**fields)


@pytest.fixture
def snapshot_factory() -> SnapshotFactory:
    """Factory fixture: snapshot_factory(timestamp_ms, save_name=None, campaign_id='c1', **overrides)."""
    return build_snapshot
