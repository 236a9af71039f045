"""
Quillpost Backend — Draft SQLAlchemy Model
===========================================

What:  ORM model representing the append-only `drafts` table.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used by DraftService for insert/select/delete and by Alembic.

Table Design:
    - id: generated UUID text; one row per saved snapshot, never updated
    - post_id: NULL while the post has never been saved (the "new post" bucket)
    - user_id: owning user as reported by the identity provider
    - content: serialized editor content (HTML, Markdown, or JSON text)
    - created_at: UTC with timezone

    Indexes serve the two listing filters:
        (post_id, created_at DESC)  → drafts of one post
        (user_id, created_at DESC)  → a user's unattached drafts
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from quillpost.database import Base


def _new_draft_id() -> str:
    return str(uuid.uuid4())


class Draft(Base):
    """
    A saved DraftSnapshot row.

    Lifecycle:
        1. Inserted on every successful server-side save
        2. Read by version history and recovery
        3. Removed only by an explicit owner delete
    """

    __tablename__ = "drafts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_draft_id,
        comment="Generated snapshot identifier",
    )

    post_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Owning post; NULL for drafts of a post that was never saved",
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Identity-provider user id of the author",
    )

    title: Mapped[str | None] = mapped_column(Text, nullable=True)

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Editor content at save time",
    )

    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)

    cover_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Comma-separated tag names, stored exactly as typed
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When this snapshot was saved (UTC)",
    )

    __table_args__ = (
        Index("idx_drafts_post_created", post_id, created_at.desc()),
        Index("idx_drafts_user_created", user_id, created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Draft(id={self.id}, post_id={self.post_id}, "
            f"user_id='{self.user_id}', created_at='{self.created_at}')>"
        )
