"""
Quillpost Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the test suite.
How:   pytest auto-discovers conftest.py; async fixtures use pytest_asyncio.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session:  AsyncMock session for pure service unit tests
    ├── user_a / user_b:  two distinct CurrentUsers for ownership checks
    ├── db_context:       real DatabaseContext on a per-test aiosqlite file
    ├── db_session:       transactional session from db_context
    ├── local_store:      LocalDraftStore rooted in tmp_path
    ├── sample_document:  Document with metadata filled in
    └── test_client:      HTTPX AsyncClient wired to a fresh app via ASGITransport
"""

import os
import tempfile

# Settings are read at import time; override before importing quillpost
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["LOCAL_DRAFT_DIR"] = tempfile.mkdtemp(prefix="quillpost_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from quillpost.database import DatabaseContext  # noqa: E402
from quillpost.models.draft import Draft  # noqa: E402,F401
from quillpost.schemas.draft import CurrentUser, Document  # noqa: E402
from quillpost.services.local_draft_store import LocalDraftStore  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Unit-Test Doubles
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = draft
        result = await draft_service.get(mock_db_session, user, "id")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def user_a():
    return CurrentUser(id="user-a", name="Ada")


@pytest.fixture
def user_b():
    return CurrentUser(id="user-b", name="Bo")


@pytest.fixture
def sample_document():
    return Document(
        content="<p>Hello <strong>world</strong></p>",
        title="First post",
        excerpt="A greeting",
        cover_image_url="https://cdn.example.com/cover.png",
        tags="intro,hello",
        post_id="post-1",
    )


# ══════════════════════════════════════════════════════════════════════════
# Real Storage
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_context(tmp_path):
    """An open DatabaseContext on a throwaway SQLite file with tables created."""
    ctx = DatabaseContext(url=f"sqlite+aiosqlite:///{tmp_path / 'drafts.db'}", echo=False)
    await ctx.open()
    await ctx.create_all()
    yield ctx
    await ctx.shutdown()


@pytest_asyncio.fixture
async def db_session(db_context):
    async with db_context.session() as session:
        yield session


@pytest.fixture
def local_store(tmp_path):
    return LocalDraftStore(root=str(tmp_path / "local_drafts"), retention=10)


@pytest_asyncio.fixture
async def test_client(db_context):
    """
    HTTPX AsyncClient talking to a fresh app backed by `db_context`.

    ASGITransport does not run the lifespan, so the context is handed to
    create_app() already open.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from quillpost.main import create_app

    app = create_app(database=db_context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
