"""
Campaign snapshot schema.

A snapshot is the full serializable state of a campaign at one point in time.
Wire names are camelCase so documents written by the game client load as-is.
The character, module state and message payloads are opaque JSON: the archive
copies them and never looks inside.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone

import pydantic
from pydantic import Field, JsonValue

from campaign_saves.base_model import CamelModel
from campaign_saves.types import JsonDatetime, to_epoch_ms

SNAPSHOT_SCHEMA_VERSION = 1
"""Current snapshot schema revision. Loaders reject anything newer."""

MAX_LAST_MESSAGES = 50
"""Size of the trailing chat window carried in a snapshot."""


class SnapshotStats(CamelModel):
    """Optional aggregate play statistics."""

    total_turns: int = Field(default=0, ge=0)
    play_time_seconds: float = Field(default=0.0, ge=0)


class Snapshot(CamelModel):
    """
    Snapshot format v1.

    Version history:
    - 1: Initial format (save name, world type, character, module state,
         trailing message window, message count, optional stats)
    """

    # Identity
    version: int = Field(default=SNAPSHOT_SCHEMA_VERSION, ge=1)
    save_name: str
    created_at: JsonDatetime

    # Campaign context
    campaign_id: str = Field(min_length=1)
    campaign_name: str = ''
    world_type: str

    # Opaque payloads
    character: JsonValue = None
    module_state: dict[str, JsonValue] = Field(default_factory=dict)

    # Conversation tail (oldest -> newest)
    last_messages: list[dict[str, JsonValue]] = Field(default_factory=list, max_length=MAX_LAST_MESSAGES)
    message_count: int = Field(default=0, ge=0)

    stats: SnapshotStats | None = None

    @pydantic.field_validator('created_at')
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError('createdAt must be timezone-aware')
        return v

    @pydantic.model_validator(mode='after')
    def validate_message_count(self) -> Snapshot:
        if self.message_count < len(self.last_messages):
            raise ValueError(
                f'messageCount ({self.message_count}) is smaller than the number of '
                f'carried messages ({len(self.last_messages)})'
            )
        return self

    @property
    def timestamp(self) -> int:
        """created_at as epoch milliseconds (the archive key)."""
        return to_epoch_ms(self.created_at)

    @classmethod
    def capture(
        cls,
        *,
        campaign_id: str,
        world_type: str,
        save_name: str,
        messages: Sequence[Mapping[str, JsonValue]],
        module_state: Mapping[str, JsonValue] | None = None,
        character: JsonValue = None,
        campaign_name: str = '',
        stats: SnapshotStats | None = None,
        created_at: datetime | None = None,
    ) -> Snapshot:
        """
        Build a snapshot from live game state.

        Keeps only the trailing MAX_LAST_MESSAGES messages while recording the
        full message count. When no character is given, the module state's
        ``character`` entry is used.

        Args:
            campaign_id: Campaign identifier
            world_type: World module / ruleset identifier
            save_name: User-visible save name
            messages: Full chat history, oldest first
            module_state: Ruleset state (quest log and ruleset-specific fields)
            character: Character payload
            campaign_name: Campaign display name
            stats: Aggregate play statistics
            created_at: Snapshot instant (default: now, UTC)

        Returns:
            New snapshot at the current schema version
        """
        state = dict(module_state or {})
        if character is None:
            character = state.get('character', {})

        return cls(
            version=SNAPSHOT_SCHEMA_VERSION,
            save_name=save_name,
            created_at=created_at or datetime.now(timezone.utc),
            campaign_id=campaign_id,
            campaign_name=campaign_name,
            world_type=world_type,
            character=character,
            module_state=state,
            last_messages=[dict(message) for message in messages[-MAX_LAST_MESSAGES:]],
            message_count=len(messages),
            stats=stats,
        )
