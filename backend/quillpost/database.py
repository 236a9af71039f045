"""
Quillpost Backend — Database Context
=====================================

What:  Async SQLAlchemy engine and session factory wrapped in an explicit
       context object with an open / health_check / shutdown lifecycle.
How:   The FastAPI lifespan owns one DatabaseContext, stores it on
       `app.state.db`, and routes receive sessions through `get_db_session`.
       Sessions auto-commit on success and roll back on error.
Who:   Lifespan handler, health route, draft routes, tests.

Connection Pooling (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite URLs skip the pool arguments (their pools reject them).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from quillpost.config import settings
from quillpost.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models share this metadata object; Alembic reads it for migrations.
    """
    pass


class DatabaseContext:
    """
    Owns the engine and session factory for one hosting process.

    Lifecycle:
        ctx = DatabaseContext(url)
        await ctx.open()            # create engine + session factory
        await ctx.health_check()    # SELECT 1
        async with ctx.session() as s: ...
        await ctx.shutdown()        # dispose pooled connections

    Calling session() before open() raises PersistenceError.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.database_url
        self.echo = settings.log_level == "DEBUG" if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise PersistenceError(message="Database context is not open")
        return self._engine

    def _engine_options(self) -> dict:
        options = {"echo": self.echo}
        if not self.url.startswith("sqlite"):
            options.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
                pool_recycle=3600,
            )
        return options

    async def open(self) -> None:
        """Create the engine and session factory. Idempotent."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, **self._engine_options())
        # expire_on_commit=False: ORM objects stay readable after commit
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database context opened (%s)", self._engine.url.render_as_string(hide_password=True))

    async def create_all(self) -> None:
        """Create every table known to Base.metadata (tests and local dev)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Return True when a trivial query succeeds."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database health check failed: %s", str(e))
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional session.

        Commits when the block exits cleanly, rolls back and re-raises on
        any exception, always closes.
        """
        if self._session_factory is None:
            raise PersistenceError(message="Database context is not open")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def shutdown(self) -> None:
        """Dispose all pooled connections."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database context shut down")


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The session comes from the DatabaseContext stored on app.state by the
    lifespan handler.

    Example usage in a route:
        @router.get("/drafts")
        async def list_drafts(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    ctx: DatabaseContext = request.app.state.db
    async with ctx.session() as session:
        yield session
