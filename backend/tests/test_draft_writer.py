"""
Quillpost Backend — Two-Tier Draft Writer Tests
================================================

What we test:
    ✅ merge_versions: dedupe by id, newest first, display cap
    ✅ Primary success never touches the fallback
    ✅ Primary failure (application or transport error) falls back
    ✅ Both tiers failing raises PersistenceError
    ✅ Listing degrades to the fallback tier
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from quillpost.exceptions import PersistenceError, UnauthorizedError
from quillpost.schemas.draft import Document, DraftSnapshot, SnapshotOrigin
from quillpost.services.draft_writer import TieredDraftWriter, merge_versions

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def snap(draft_id, minutes_ago=0, origin=SnapshotOrigin.SERVER):
    return DraftSnapshot(
        id=draft_id,
        content=draft_id,
        created_at=NOW - timedelta(minutes=minutes_ago),
        origin=origin,
    )


def mock_store(name):
    store = MagicMock()
    store.name = name
    store.save = AsyncMock()
    store.list = AsyncMock(return_value=[])
    store.close = AsyncMock()
    return store


class TestMergeVersions:

    def test_sorted_newest_first(self):
        merged = merge_versions([snap("a", 10), snap("b", 1)], [snap("c", 5)])
        assert [s.id for s in merged] == ["b", "c", "a"]

    def test_dedupes_by_id_keeping_first(self):
        server = snap("same", 3)
        duplicate = DraftSnapshot(id="same", content="other", created_at=NOW, origin=SnapshotOrigin.LOCAL)
        merged = merge_versions([server], [duplicate])
        assert len(merged) == 1
        assert merged[0].origin is SnapshotOrigin.SERVER

    def test_capped(self):
        many = [snap(f"s{i}", i) for i in range(15)]
        local = [snap(f"l{i}", i, SnapshotOrigin.LOCAL) for i in range(10)]
        assert len(merge_versions(many, local)) == 20
        assert len(merge_versions(many, local, cap=5)) == 5

    def test_empty(self):
        assert merge_versions([], []) == []


class TestTieredSave:

    def setup_method(self):
        self.primary = mock_store("server")
        self.fallback = mock_store("local")
        self.writer = TieredDraftWriter(self.primary, self.fallback)
        self.document = Document(content="<p>x</p>", post_id="p")

    @pytest.mark.asyncio
    async def test_primary_success(self):
        self.primary.save.return_value = snap("s1")

        outcome = await self.writer.save(self.document)

        assert outcome.snapshot.id == "s1"
        assert outcome.tier == "server"
        assert outcome.used_fallback is False
        self.fallback.save.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            PersistenceError(message="down", retryable=True),
            UnauthorizedError(),
            httpx.ConnectError("refused"),
        ],
    )
    async def test_primary_failure_falls_back(self, error):
        self.primary.save.side_effect = error
        self.fallback.save.return_value = snap("local_1", origin=SnapshotOrigin.LOCAL)

        outcome = await self.writer.save(self.document)

        assert outcome.tier == "local"
        assert outcome.used_fallback is True
        assert outcome.primary_error is error
        self.fallback.save.assert_awaited_once_with(self.document)

    @pytest.mark.asyncio
    async def test_both_tiers_failing(self):
        self.primary.save.side_effect = PersistenceError(message="down")
        self.fallback.save.side_effect = PersistenceError(message="disk full")

        with pytest.raises(PersistenceError) as exc_info:
            await self.writer.save(self.document)
        assert exc_info.value.context["primary_error"] == "PersistenceError"

    @pytest.mark.asyncio
    async def test_programming_errors_are_not_swallowed(self):
        self.primary.save.side_effect = TypeError("bug")
        with pytest.raises(TypeError):
            await self.writer.save(self.document)
        self.fallback.save.assert_not_awaited()


class TestTieredList:

    @pytest.mark.asyncio
    async def test_merges_both_tiers(self):
        primary, fallback = mock_store("server"), mock_store("local")
        primary.list.return_value = [snap("s1", 5)]
        fallback.list.return_value = [snap("local_1", 1, SnapshotOrigin.LOCAL)]

        versions = await TieredDraftWriter(primary, fallback).list("p")

        assert [v.id for v in versions] == ["local_1", "s1"]

    @pytest.mark.asyncio
    async def test_primary_failure_degrades_to_local(self):
        primary, fallback = mock_store("server"), mock_store("local")
        primary.list.side_effect = PersistenceError(message="down")
        fallback.list.return_value = [snap("local_1")]

        versions = await TieredDraftWriter(primary, fallback).list("p")

        assert [v.id for v in versions] == ["local_1"]

    @pytest.mark.asyncio
    async def test_close_closes_both(self):
        primary, fallback = mock_store("server"), mock_store("local")
        await TieredDraftWriter(primary, fallback).close()
        primary.close.assert_awaited_once()
        fallback.close.assert_awaited_once()
