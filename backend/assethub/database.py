"""
AssetHub Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   `Database` owns an async engine with connection pooling and a session
       factory. The ServiceContainer constructs exactly one per process; the
       request dependency opens a session that rolls back on error.
Who:   Used by route handlers via FastAPI's dependency injection system and
       by tests against an in-memory SQLite engine.

Connection Pooling Strategy:
    pool_size=20:     Persistent connections for normal load
    max_overflow=10:  Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:    Validates connections before use (catches stale connections)
    pool_recycle=3600: Recycles connections every hour

    SQLite (tests) does not accept pool sizing arguments, so they are only
    passed for server databases.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from assethub.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class so they share one metadata object,
    which Alembic and the test fixtures use to create the schema.
    """
    pass


class Database:
    """Owns the engine and hands out sessions."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        # expire_on_commit=False: services read attributes after committing
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        url = settings.database_url
        if url.startswith("sqlite"):
            # In-memory SQLite lives in a single connection; share it
            engine = create_async_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=settings.log_level == "DEBUG",
            )
        else:
            engine = create_async_engine(
                url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_pre_ping=settings.db_pool_pre_ping,
                pool_recycle=3600,
                echo=settings.log_level == "DEBUG",
            )
        return cls(engine)

    async def create_all(self) -> None:
        """Create every table known to Base.metadata. Used by tests and local dev."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """
        What:  Gracefully closes all connections in the pool.
        When:  Called during application shutdown (lifespan handler).
        """
        await self.engine.dispose()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the container's Database
        2. Yields it to the route handler
        3. On error: rolls back the transaction (discards partial writes)
        4. Always: closes the session (returns connection to pool)

    Services commit explicitly once a mutation is complete, because change
    events are only published after the commit succeeds.
    """
    database: Database = request.app.state.container.database
    async with database.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
