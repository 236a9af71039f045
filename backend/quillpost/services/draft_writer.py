"""
Quillpost Backend — Two-Tier Draft Writer
==========================================

What:  Writes a snapshot to a primary store and falls back to a secondary
       store when the primary cannot take it; merges both tiers for listing.
How:   Explicit primary/fallback composition over the DraftStore interface.
Who:   AutoSaveController.

Save Flow:
    ┌──────────┐  ok   ┌────────────────────────┐
    │ primary  │──────▶│ SaveOutcome(primary)   │
    └────┬─────┘       └────────────────────────┘
         │ PersistenceError / UnauthorizedError
         ▼
    ┌──────────┐  ok   ┌────────────────────────┐
    │ fallback │──────▶│ SaveOutcome(fallback,  │
    └────┬─────┘       │   primary_error=…)     │
         │ error       └────────────────────────┘
         ▼
    PersistenceError (both tiers failed; content stays unsaved)

List Flow:
    primary.list + fallback.list → merge_versions (dedupe by id,
    newest first, capped). A failing primary degrades to fallback only.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import httpx

from quillpost.config import settings
from quillpost.exceptions import PersistenceError, QuillpostError
from quillpost.schemas.draft import Document, DraftSnapshot
from quillpost.services.draft_store_base import DraftStore

logger = logging.getLogger(__name__)

FALLBACK_ERRORS = (QuillpostError, httpx.HTTPError, OSError)


def merge_versions(*lists: Iterable[DraftSnapshot], cap: Optional[int] = None) -> List[DraftSnapshot]:
    """
    Merge snapshot lists into one VersionList.

    Deduplicates on id (first occurrence wins), sorts by created_at
    descending, and keeps at most `cap` entries.
    """
    cap = cap or settings.version_display_cap
    seen = set()
    merged: List[DraftSnapshot] = []
    for snapshots in lists:
        for snapshot in snapshots:
            if snapshot.id in seen:
                continue
            seen.add(snapshot.id)
            merged.append(snapshot)
    merged.sort(key=lambda s: s.created_at, reverse=True)
    return merged[:cap]


@dataclass(frozen=True)
class SaveOutcome:
    snapshot: DraftSnapshot
    tier: str
    primary_error: Optional[Exception] = None

    @property
    def used_fallback(self) -> bool:
        return self.primary_error is not None


class TieredDraftWriter:
    """Primary + fallback snapshot writer."""

    def __init__(self, primary: DraftStore, fallback: DraftStore, display_cap: Optional[int] = None):
        self.primary = primary
        self.fallback = fallback
        self.display_cap = display_cap or settings.version_display_cap

    async def save(self, document: Document) -> SaveOutcome:
        try:
            snapshot = await self.primary.save(document)
            return SaveOutcome(snapshot=snapshot, tier=self.primary.name)
        except FALLBACK_ERRORS as primary_error:
            logger.warning(
                "Primary draft save failed (%s): %s; writing to %s",
                type(primary_error).__name__,
                str(primary_error),
                self.fallback.name,
            )
            try:
                snapshot = await self.fallback.save(document)
            except FALLBACK_ERRORS as fallback_error:
                logger.error(
                    "Fallback draft save failed: %s", str(fallback_error), exc_info=True
                )
                raise PersistenceError(
                    message="Failed to save draft",
                    context={
                        "primary_error": type(primary_error).__name__,
                        "fallback_error": type(fallback_error).__name__,
                    },
                ) from fallback_error
            return SaveOutcome(snapshot=snapshot, tier=self.fallback.name, primary_error=primary_error)

    async def list(self, post_id: Optional[str], limit: Optional[int] = None) -> List[DraftSnapshot]:
        """Merged VersionList. Never raises for a failing primary."""
        try:
            primary = await self.primary.list(post_id, limit)
        except FALLBACK_ERRORS as e:
            logger.warning("Primary draft list failed, showing %s drafts only: %s", self.fallback.name, str(e))
            primary = []

        try:
            fallback = await self.fallback.list(post_id)
        except FALLBACK_ERRORS as e:
            logger.warning("Fallback draft list failed: %s", str(e))
            fallback = []

        return merge_versions(primary, fallback, cap=self.display_cap)

    async def close(self) -> None:
        await self.primary.close()
        await self.fallback.close()
