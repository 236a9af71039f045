"""
Quillpost Backend — Draft Service Tests
========================================

What we test:
    ✅ save always inserts a new snapshot with a fresh id
    ✅ list filters by post and owner, newest first, bounded by limit
    ✅ get / delete enforce ownership; repeated delete is NotFound
    ✅ Missing user is Unauthorized
    ✅ Unexpected database errors become PersistenceError

Most tests run against a real SQLite database (aiosqlite); the error-path
tests use a mock session.
"""

from datetime import datetime, timedelta, timezone

import pytest

from quillpost.exceptions import NotFoundError, PersistenceError, UnauthorizedError
from quillpost.models.draft import Draft
from quillpost.schemas.draft import Document, SnapshotOrigin
from quillpost.services.draft_service import DraftService

BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def add_row(session, draft_id, user_id, post_id, minutes, content="<p>x</p>"):
    session.add(
        Draft(
            id=draft_id,
            user_id=user_id,
            post_id=post_id,
            content=content,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
    )


class TestDraftServiceSave:

    def setup_method(self):
        self.service = DraftService()

    @pytest.mark.asyncio
    async def test_save_creates_snapshot(self, db_session, user_a, sample_document):
        snapshot = await self.service.save(db_session, user_a, sample_document)

        assert len(snapshot.id) == 36
        assert snapshot.user_id == "user-a"
        assert snapshot.post_id == "post-1"
        assert snapshot.title == "First post"
        assert snapshot.tags == "intro,hello"
        assert snapshot.origin is SnapshotOrigin.SERVER
        assert snapshot.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_save_never_overwrites(self, db_session, user_a, sample_document):
        first = await self.service.save(db_session, user_a, sample_document)
        second = await self.service.save(db_session, user_a, sample_document)

        assert first.id != second.id
        assert len(await self.service.list(db_session, user_a, post_id="post-1")) == 2

    @pytest.mark.asyncio
    async def test_save_structured_content_as_json_text(self, db_session, user_a):
        document = Document(content={"type": "doc", "content": []}, content_format="json")
        snapshot = await self.service.save(db_session, user_a, document)
        assert snapshot.content == '{"type": "doc", "content": []}'
        assert snapshot.post_id is None

    @pytest.mark.asyncio
    async def test_save_without_user(self, db_session, sample_document):
        with pytest.raises(UnauthorizedError):
            await self.service.save(db_session, None, sample_document)

    @pytest.mark.asyncio
    async def test_save_database_failure(self, mock_db_session, user_a, sample_document):
        mock_db_session.flush.side_effect = RuntimeError("connection reset")

        with pytest.raises(PersistenceError) as exc_info:
            await self.service.save(mock_db_session, user_a, sample_document)
        assert exc_info.value.context["error_type"] == "RuntimeError"


class TestDraftServiceList:

    def setup_method(self):
        self.service = DraftService()

    @pytest.mark.asyncio
    async def test_post_drafts_newest_first_and_owned(self, db_session, user_a):
        add_row(db_session, "a-old", "user-a", "post-1", 0)
        add_row(db_session, "a-new", "user-a", "post-1", 10)
        add_row(db_session, "a-other-post", "user-a", "post-2", 20)
        add_row(db_session, "b-same-post", "user-b", "post-1", 30)
        await db_session.flush()

        drafts = await self.service.list(db_session, user_a, post_id="post-1")

        assert [d.id for d in drafts] == ["a-new", "a-old"]

    @pytest.mark.asyncio
    async def test_unattached_drafts_of_user(self, db_session, user_a):
        add_row(db_session, "a-none-1", "user-a", None, 0)
        add_row(db_session, "a-none-2", "user-a", None, 5)
        add_row(db_session, "a-post", "user-a", "post-1", 10)
        add_row(db_session, "b-none", "user-b", None, 15)
        await db_session.flush()

        drafts = await self.service.list(db_session, user_a, post_id=None)

        assert [d.id for d in drafts] == ["a-none-2", "a-none-1"]

    @pytest.mark.asyncio
    async def test_limit(self, db_session, user_a):
        for i in range(5):
            add_row(db_session, f"d{i}", "user-a", "post-1", i)
        await db_session.flush()

        drafts = await self.service.list(db_session, user_a, post_id="post-1", limit=3)

        assert [d.id for d in drafts] == ["d4", "d3", "d2"]

    @pytest.mark.asyncio
    async def test_list_without_user(self, db_session):
        with pytest.raises(UnauthorizedError):
            await self.service.list(db_session, None, post_id="post-1")

    @pytest.mark.asyncio
    async def test_list_database_failure(self, mock_db_session, user_a):
        mock_db_session.execute.side_effect = RuntimeError("timeout")
        with pytest.raises(PersistenceError):
            await self.service.list(mock_db_session, user_a, post_id="post-1")


class TestDraftServiceOwnership:

    def setup_method(self):
        self.service = DraftService()

    @pytest.mark.asyncio
    async def test_get_own_draft(self, db_session, user_a, sample_document):
        saved = await self.service.save(db_session, user_a, sample_document)
        fetched = await self.service.get(db_session, user_a, saved.id)
        assert fetched.id == saved.id
        assert fetched.content == sample_document.content

    @pytest.mark.asyncio
    async def test_get_other_users_draft(self, db_session, user_a, user_b, sample_document):
        saved = await self.service.save(db_session, user_a, sample_document)
        with pytest.raises(UnauthorizedError):
            await self.service.get(db_session, user_b, saved.id)

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session, user_a):
        with pytest.raises(NotFoundError):
            await self.service.get(db_session, user_a, "does-not-exist")

    @pytest.mark.asyncio
    async def test_delete_other_users_draft(self, db_session, user_a, user_b, sample_document):
        saved = await self.service.save(db_session, user_a, sample_document)
        with pytest.raises(UnauthorizedError):
            await self.service.delete(db_session, user_b, saved.id)
        # Still there for the owner
        assert (await self.service.get(db_session, user_a, saved.id)).id == saved.id

    @pytest.mark.asyncio
    async def test_delete_twice(self, db_session, user_a, sample_document):
        saved = await self.service.save(db_session, user_a, sample_document)

        assert await self.service.delete(db_session, user_a, saved.id) is True
        with pytest.raises(NotFoundError):
            await self.service.delete(db_session, user_a, saved.id)

    @pytest.mark.asyncio
    async def test_get_database_failure(self, mock_db_session, user_a):
        mock_db_session.execute.side_effect = RuntimeError("gone")
        with pytest.raises(PersistenceError):
            await self.service.get(mock_db_session, user_a, "x")
