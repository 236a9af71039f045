"""
Quillpost Backend — Draft Service (Server-Side Snapshot Persistence)
=====================================================================

What:  Append-only draft snapshots in the relational store: save, list, get,
       delete, all scoped to the acting user.
How:   Each call receives an AsyncSession (from DatabaseContext) and the
       CurrentUser; rows are inserted, never updated.
Who:   Called by the /api/drafts route handlers.

Ownership:
    list  → only the caller's rows are visible
    get   → NotFoundError if missing, UnauthorizedError if owned by someone else
    delete→ same rule as get; a second delete of the same id is NotFoundError

Listing filters:
    post_id given  → WHERE post_id = :post_id AND user_id = :user
    post_id absent → WHERE user_id = :user AND post_id IS NULL
    ORDER BY created_at DESC LIMIT :limit
"""

import logging
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from quillpost.config import settings
from quillpost.exceptions import (
    NotFoundError,
    PersistenceError,
    QuillpostError,
    UnauthorizedError,
)
from quillpost.models.draft import Draft
from quillpost.schemas.draft import CurrentUser, Document, DraftSnapshot, SnapshotOrigin

logger = logging.getLogger(__name__)


def _require_user(user: Optional[CurrentUser]) -> CurrentUser:
    if user is None:
        raise UnauthorizedError(message="Sign in to manage drafts")
    return user


def _to_snapshot(draft: Draft) -> DraftSnapshot:
    return DraftSnapshot(
        id=draft.id,
        post_id=draft.post_id,
        user_id=draft.user_id,
        content=draft.content,
        title=draft.title,
        excerpt=draft.excerpt,
        cover_image_url=draft.cover_image_url,
        tags=draft.tags,
        created_at=draft.created_at,
        origin=SnapshotOrigin.SERVER,
    )


class DraftService:
    """
    Business logic layer for draft snapshots.

    Error Handling Strategy:
        Application exceptions (NotFoundError, UnauthorizedError) propagate
        unchanged. Anything else coming out of the session is logged with its
        traceback and wrapped in PersistenceError so driver details never reach
        the client.
    """

    async def save(
        self,
        db: AsyncSession,
        user: Optional[CurrentUser],
        document: Document,
    ) -> DraftSnapshot:
        """
        Insert a new snapshot of `document` for `user`.

        Never overwrites: every call produces a row with a fresh id, even when
        the content is identical to the previous snapshot.
        """
        user = _require_user(user)
        try:
            draft = Draft(
                post_id=document.post_id,
                user_id=user.id,
                title=document.title or None,
                content=document.serialized_content(),
                excerpt=document.excerpt or None,
                cover_image_url=document.cover_image_url or None,
                tags=document.tags or None,
            )
            db.add(draft)
            # Flush assigns defaults (id, created_at); commit happens in the session scope
            await db.flush()
            logger.info(
                "Draft %s saved (post=%s, user=%s, %d chars)",
                draft.id,
                draft.post_id or "new",
                user.id,
                len(draft.content),
            )
            return _to_snapshot(draft)

        except QuillpostError:
            raise
        except Exception as e:
            logger.error("Database error saving draft: %s", str(e), exc_info=True)
            raise PersistenceError(
                message="Could not save the draft. Please try again.",
                retryable=True,
                context={"error_type": type(e).__name__},
            )

    async def list(
        self,
        db: AsyncSession,
        user: Optional[CurrentUser],
        post_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[DraftSnapshot]:
        """Snapshots visible to `user` for `post_id` (or the unattached bucket), newest first."""
        user = _require_user(user)
        limit = limit or settings.draft_list_limit
        try:
            query = select(Draft).where(Draft.user_id == user.id)
            if post_id is not None:
                query = query.where(Draft.post_id == post_id)
            else:
                query = query.where(Draft.post_id.is_(None))
            query = query.order_by(desc(Draft.created_at)).limit(limit)

            result = await db.execute(query)
            drafts = list(result.scalars().all())
            return [_to_snapshot(draft) for draft in drafts]

        except Exception as e:
            logger.error("Database error listing drafts: %s", str(e), exc_info=True)
            raise PersistenceError(
                message="Could not retrieve drafts. Please try again.",
                retryable=True,
                context={"post_id": post_id, "error_type": type(e).__name__},
            )

    async def _owned_draft(self, db: AsyncSession, user: CurrentUser, draft_id: str) -> Draft:
        try:
            result = await db.execute(select(Draft).where(Draft.id == draft_id))
            draft = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching draft %s: %s", draft_id, str(e))
            raise PersistenceError(
                message="Could not retrieve the draft. Please try again.",
                retryable=True,
                context={"draft_id": draft_id},
            )

        if draft is None:
            raise NotFoundError(resource="draft", resource_id=draft_id)
        if draft.user_id != user.id:
            logger.warning("User %s denied access to draft %s", user.id, draft_id)
            raise UnauthorizedError(context={"draft_id": draft_id})
        return draft

    async def get(
        self,
        db: AsyncSession,
        user: Optional[CurrentUser],
        draft_id: str,
    ) -> DraftSnapshot:
        """
        Fetch one snapshot.

        Raises:
            UnauthorizedError: no user, or the snapshot belongs to another user (→ 401)
            NotFoundError: no snapshot with this id (→ 404)
            PersistenceError: query failed (→ 500)
        """
        user = _require_user(user)
        draft = await self._owned_draft(db, user, draft_id)
        return _to_snapshot(draft)

    async def delete(
        self,
        db: AsyncSession,
        user: Optional[CurrentUser],
        draft_id: str,
    ) -> bool:
        user = _require_user(user)
        draft = await self._owned_draft(db, user, draft_id)
        try:
            await db.delete(draft)
            await db.flush()
        except Exception as e:
            logger.error("Database error deleting draft %s: %s", draft_id, str(e), exc_info=True)
            raise PersistenceError(
                message="Could not delete the draft. Please try again.",
                context={"draft_id": draft_id},
            )
        logger.info("Draft %s deleted by %s", draft_id, user.id)
        return True


# ── Singleton Instance ────────────────────────────────────────────────────
draft_service = DraftService()
