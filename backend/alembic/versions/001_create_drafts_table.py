"""Create drafts table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the append-only `drafts` table holding DraftSnapshots.
How:   Portable column types (String ids, timezone-aware timestamps) so the
       same migration runs on PostgreSQL and SQLite.

Rollback: downgrade() drops the table (all snapshots are lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the drafts table and the two listing indexes."""
    op.create_table(
        "drafts",
        sa.Column("id", sa.String(36), nullable=False, comment="Generated snapshot identifier"),
        sa.Column(
            "post_id",
            sa.String(64),
            nullable=True,
            comment="Owning post; NULL for drafts of a post that was never saved",
        ),
        sa.Column("user_id", sa.String(64), nullable=False, comment="Identity-provider user id of the author"),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False, comment="Editor content at save time"),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("cover_image_url", sa.String(2048), nullable=True),
        sa.Column("tags", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this snapshot was saved (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Drafts of one post, newest first
    op.create_index("idx_drafts_post_created", "drafts", ["post_id", sa.text("created_at DESC")])
    # A user's unattached drafts, newest first
    op.create_index("idx_drafts_user_created", "drafts", ["user_id", sa.text("created_at DESC")])


def downgrade() -> None:
    op.drop_index("idx_drafts_user_created", table_name="drafts")
    op.drop_index("idx_drafts_post_created", table_name="drafts")
    op.drop_table("drafts")
