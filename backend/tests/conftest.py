"""
AssetHub Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (in-memory database, cache,
       event bus, service container, API client, user factory).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped, fresh per test):
    test_settings
    └── database          in-memory SQLite (aiosqlite) with the full schema
        ├── store         one SqlAlchemyStore (unit of work)
        └── container     ServiceContainer over InMemoryCacheService +
                          InMemoryEventBus, invalidator subscribed
            └── test_client   HTTPX AsyncClient on create_app(container)

Helpers:
    make_user(username, role)  → persisted User
    identity_of(user)          → Identity for service calls
    settle(container)          → wait until every emitted event was consumed
"""

import os
from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["EVENT_BUS_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"

from assethub.cache.memory import InMemoryCacheService  # noqa: E402
from assethub.config import Settings  # noqa: E402
from assethub.container import ServiceContainer  # noqa: E402
from assethub.database import Database  # noqa: E402
from assethub.events.bus import InMemoryEventBus  # noqa: E402
from assethub.models import User  # noqa: E402
from assethub.schemas.common import Identity, UserRole  # noqa: E402
from assethub.store.sqlalchemy_store import SqlAlchemyStore  # noqa: E402


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite+aiosqlite:///:memory:",
        cache_backend="memory",
        event_bus_backend="memory",
        log_level="WARNING",
        # No real sleeping between consumer retries
        consumer_retry_min_wait=0,
        consumer_retry_max_wait=0,
        event_drain_timeout_seconds=1.0,
    )
    values.update(overrides)
    return Settings(**values)


def identity_of(user: User) -> Identity:
    return Identity(user_id=user.id, role=UserRole(user.role))


async def settle(container: ServiceContainer) -> None:
    """Wait until published events have been consumed by the invalidator."""
    await container.emitter.flush()
    if isinstance(container.bus, InMemoryEventBus):
        await container.bus.join()


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def database(test_settings) -> AsyncGenerator[Database, None]:
    db = Database.from_settings(test_settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def store(database) -> AsyncGenerator[SqlAlchemyStore, None]:
    async with database.session_factory() as session:
        yield SqlAlchemyStore(session)


@pytest_asyncio.fixture
async def container(test_settings, database) -> AsyncGenerator[ServiceContainer, None]:
    c = ServiceContainer(
        settings=test_settings,
        database=database,
        cache=InMemoryCacheService(),
        bus=InMemoryEventBus(),
    )
    await c.start()
    yield c
    # The database fixture disposes the engine after the store session closes
    await c.emitter.drain(timeout=1.0)
    await c.bus.close()


@pytest.fixture
def make_user(store) -> Callable[..., Awaitable[User]]:
    """
    Usage:
        alice = await make_user("alice", "manager")
    """

    async def create(username: str, role: str = "member") -> User:
        user = await store.users.create(
            username=username, email=f"{username}@example.com", role=role
        )
        await store.commit()
        return user

    return create


@pytest_asyncio.fixture
async def test_client(container) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX client routed straight into the app.

    Usage:
        response = await test_client.get("/health")
    """
    from assethub.main import create_app

    app = create_app(container=container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
