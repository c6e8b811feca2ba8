"""
Shared type definitions for the campaign-saves package.

Centralizes common type annotations used across multiple modules.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal

import pydantic

# Pydantic-enhanced datetime for JSON serialization (allows string→datetime conversion)
JsonDatetime = Annotated[datetime, pydantic.Field(strict=False)]

# Epoch milliseconds - the key of a cold-tier entry and the listing sort key
EpochMillis = Annotated[int, pydantic.Field(ge=0)]

Tier = Literal['hot', 'cold']


def to_epoch_ms(value: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(round(value.timestamp() * 1000))


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
