"""
Archive operation schemas.

Models exchanged between the archive service, the retention policy and the
storage backends, and returned to callers.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from campaign_saves.base_model import StrictModel
from campaign_saves.types import EpochMillis, Tier


# ==============================================================================
# Cold Archive Entry (native listing item)
# ==============================================================================


class ArchiveEntry(StrictModel):
    """One cold-tier entry as reported by a backend listing."""

    campaign_id: str
    timestamp: EpochMillis  # Key component: the demoted snapshot's created_at
    save_name: str
    saved_at: EpochMillis
    content_type: str


# ==============================================================================
# Save Metadata (listing projection)
# ==============================================================================


class SaveMetadata(StrictModel):
    """
    Listing projection of a save in either tier.

    Derived from the tier's native metadata; never stored on its own.
    """

    save_name: str
    saved_at: EpochMillis
    timestamp: EpochMillis  # Pass to load() for cold entries
    is_compressed: bool
    tier: Tier


# ==============================================================================
# Save Result (structured error channel)
# ==============================================================================


class SaveIssue(StrictModel):
    """A non-fatal problem while demoting the previous save or pruning history."""

    stage: Literal['read', 'encode', 'compress', 'evict', 'archive']
    message: str
    timestamp: EpochMillis | None = None  # Affected archive entry, if any
    quarantined_to: str | None = None  # Where an unreadable current save was moved


class SaveResult(StrictModel):
    """
    Outcome of a successful save.

    The new snapshot is always current when a SaveResult is returned; issues
    only describe degraded history (demotion or pruning that did not happen).
    """

    campaign_id: str
    saved_at: EpochMillis
    demoted: SaveMetadata | None = None  # Previous current save, now archived
    evicted: Sequence[EpochMillis] = ()  # Archive entries pruned by retention
    issues: Sequence[SaveIssue] = ()

    @property
    def history_degraded(self) -> bool:
        """True when the save succeeded but archiving or pruning did not."""
        return bool(self.issues)
