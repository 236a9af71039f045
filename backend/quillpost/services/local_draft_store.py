"""
Quillpost Backend — Local Draft Store (Fallback Tier)
=====================================================

What:  A bounded ring buffer of draft snapshots kept on local disk, used when
       the drafts API cannot take a save.
How:   One JSON file per post: `draft_<postId>.json`, or `draft_new_post.json`
       for a post that was never saved. Each save is a read-modify-write of
       that file: prepend the new snapshot, keep the newest N, write back.
Who:   TieredDraftWriter (fallback tier), AutoSaveController via the writer.

Storage Layout:
    local_drafts/
    ├── draft_new_post.json
    └── draft_8f2c….json        [newest, …, oldest]  (at most N entries)

Concurrency:
    Single writer per editing session. Two sessions editing the same post
    can lose a snapshot to the read-modify-write race; that is accepted.
"""

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import aiofiles
from pydantic import ValidationError

from quillpost.config import settings
from quillpost.exceptions import PersistenceError
from quillpost.schemas.draft import Document, DraftSnapshot, SnapshotOrigin
from quillpost.services.draft_store_base import DraftStore

logger = logging.getLogger(__name__)

NEW_POST_KEY = "new_post"

# Post ids end up in file names
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def storage_key(post_id: Optional[str]) -> str:
    """`draft_<postId>` or `draft_new_post`."""
    if not post_id:
        return f"draft_{NEW_POST_KEY}"
    return f"draft_{_UNSAFE_KEY_CHARS.sub('_', post_id)}"


class LocalDraftStore(DraftStore):
    """
    File-backed ring buffer of DraftSnapshots.

    Snapshot ids are `local_<hex>` so merged lists never collide with
    server-generated UUIDs.
    """

    name = "local"

    def __init__(self, root: Optional[str] = None, retention: Optional[int] = None):
        self.root = Path(root or settings.local_draft_dir).resolve()
        self.retention = retention or settings.local_draft_retention

    def _path(self, post_id: Optional[str]) -> Path:
        return self.root / f"{storage_key(post_id)}.json"

    async def _read(self, post_id: Optional[str]) -> List[DraftSnapshot]:
        path = self._path(post_id)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Local drafts unreadable at %s: %s", path.name, str(e))
            return []

        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise ValueError("expected a JSON array")
            return [DraftSnapshot.model_validate(entry) for entry in entries]
        except (ValueError, ValidationError) as e:
            # Corrupt buffers are treated as empty and overwritten by the next save
            logger.warning("Discarding corrupt local drafts in %s: %s", path.name, str(e))
            return []

    async def _write(self, post_id: Optional[str], snapshots: List[DraftSnapshot]) -> None:
        path = self._path(post_id)
        payload = json.dumps(
            [snapshot.model_dump(mode="json", by_alias=True) for snapshot in snapshots],
            ensure_ascii=False,
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(payload)
        except OSError as e:
            logger.error("Failed to write local drafts at %s: %s", path, str(e))
            raise PersistenceError(
                message="Could not save the draft locally.",
                context={"path": str(path), "os_error": str(e)},
            )

    async def save(self, document: Document) -> DraftSnapshot:
        snapshot = DraftSnapshot(
            id=f"local_{uuid.uuid4().hex}",
            post_id=document.post_id,
            content=document.serialized_content(),
            title=document.title or None,
            excerpt=document.excerpt or None,
            cover_image_url=document.cover_image_url or None,
            tags=document.tags or None,
            created_at=datetime.now(timezone.utc),
            origin=SnapshotOrigin.LOCAL,
        )
        existing = await self._read(document.post_id)
        snapshots = [snapshot] + existing
        await self._write(document.post_id, snapshots[: self.retention])
        logger.info(
            "Local draft %s saved (%s, %d kept)",
            snapshot.id,
            storage_key(document.post_id),
            min(len(snapshots), self.retention),
        )
        return snapshot

    async def list(self, post_id: Optional[str], limit: Optional[int] = None) -> List[DraftSnapshot]:
        snapshots = sorted(await self._read(post_id), key=lambda s: s.created_at, reverse=True)
        if limit:
            return snapshots[:limit]
        return snapshots

    async def get(self, post_id: Optional[str], draft_id: str) -> Optional[DraftSnapshot]:
        for snapshot in await self._read(post_id):
            if snapshot.id == draft_id:
                return snapshot
        return None

    async def delete(self, post_id: Optional[str], draft_id: str) -> bool:
        """Remove one snapshot; False when it is not in the buffer."""
        snapshots = await self._read(post_id)
        remaining = [s for s in snapshots if s.id != draft_id]
        if len(remaining) == len(snapshots):
            return False
        await self._write(post_id, remaining)
        return True

    async def clear(self, post_id: Optional[str]) -> None:
        path = self._path(post_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("Failed to clear local drafts %s: %s", path.name, str(e))
