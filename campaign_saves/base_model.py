"""
Shared Pydantic base models.

Internal records inherit from StrictModel. Documents that cross the wire to
game clients (snapshots) inherit from CamelModel, which adds camelCase aliases
while still accepting snake_case names from Python callers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StrictModel(BaseModel):
    """Base model with strict validation settings."""

    model_config = ConfigDict(
        extra='forbid',  # Raise error on unexpected fields
        strict=True,  # Strict type validation
        frozen=True,  # Immutable (cannot modify after creation)
    )


class CamelModel(StrictModel):
    """StrictModel whose wire names are camelCase (dump with by_alias=True)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
