"""
Backup operation schemas.

Models for file export and auto-backup results.
"""

from __future__ import annotations

from collections.abc import Sequence

from campaign_saves.base_model import StrictModel
from campaign_saves.types import JsonDatetime


class BackupResult(StrictModel):
    """Result of writing a backup file."""

    file_path: str
    campaign_id: str
    backed_up_at: JsonDatetime
    compressed: bool
    size_bytes: int
    turn: int  # Turn counter recorded as the last backup turn
    pruned: Sequence[str] = ()  # Older backup files removed
    prune_error: str | None = None  # Pruning is best-effort
