"""
Quillpost Backend — Abstract Draft Store Interface
===================================================

What:  The contract shared by every place a draft snapshot can be written to
       from the editing side: the remote drafts API and the local fallback.
How:   Concrete stores inherit from DraftStore; TieredDraftWriter composes a
       primary and a fallback store without knowing which is which.
Who:   DraftApiClient, LocalDraftStore, TieredDraftWriter, AutoSaveController.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from quillpost.schemas.draft import Document, DraftSnapshot


class DraftStore(ABC):
    """
    Abstract snapshot store.

    Contract:
        - save() always creates a new snapshot, never overwrites one
        - list() returns snapshots newest first
        - failures are reported as QuillpostError subclasses
          (PersistenceError, UnauthorizedError, NotFoundError)
    """

    name: str = "store"

    @abstractmethod
    async def save(self, document: Document) -> DraftSnapshot:
        """Persist a new snapshot of `document` and return it."""
        ...

    @abstractmethod
    async def list(self, post_id: Optional[str], limit: Optional[int] = None) -> List[DraftSnapshot]:
        """Snapshots for `post_id` (None for the new-post bucket), newest first."""
        ...

    async def close(self) -> None:
        """Release held resources. Stores without any keep the default."""
        return None
