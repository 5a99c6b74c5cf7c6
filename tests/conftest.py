"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from knowshare.app.api.dependencies import (
    get_answer_composer,
    get_embedding_gateway,
    get_notifier,
)
from knowshare.app.db.engine import enable_sqlite_foreign_keys, get_session
from knowshare.app.db.models import Base, Org, User
from knowshare.app.llm.client import DeterministicStubClient
from knowshare.app.main import app
from knowshare.app.realtime.notifier import InMemoryNotifier
from tests.helpers import (
    ALICE_ID,
    BOB_ID,
    CAROL_ID,
    MALLORY_ID,
    ORG_ID,
    OTHER_ORG_ID,
    ApiHarness,
    StaticEmbeddingGateway,
)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine shared by every session of one test.

    StaticPool keeps the single connection (and so the database) alive across
    sessions; the FK pragma makes ON DELETE rules behave as on PostgreSQL.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )
    enable_sqlite_foreign_keys(test_engine)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def seeded_engine(engine: AsyncEngine) -> AsyncEngine:
    """Engine with one org (Alice, Bob, Carol) and a second org (Mallory)."""
    async with AsyncSession(engine) as session:
        session.add_all(
            [
                Org(org_id=ORG_ID, name="Acme"),
                Org(org_id=OTHER_ORG_ID, name="Globex"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                User(user_id=ALICE_ID, org_id=ORG_ID, name="Alice", email="alice@acme.test"),
                User(user_id=BOB_ID, org_id=ORG_ID, name="Bob", email="bob@acme.test"),
                User(user_id=CAROL_ID, org_id=ORG_ID, name="Carol", email="carol@acme.test"),
                User(
                    user_id=MALLORY_ID,
                    org_id=OTHER_ORG_ID,
                    name="Mallory",
                    email="mallory@globex.test",
                ),
            ]
        )
        await session.commit()

    return engine


@pytest_asyncio.fixture
async def session(seeded_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session over the seeded database, configured like the app's sessions."""
    async with AsyncSession(seeded_engine, expire_on_commit=False) as test_session:
        yield test_session


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    pg_engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with pg_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield pg_engine

    async with pg_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await pg_engine.dispose()


@pytest.fixture
def api(
    seeded_engine: AsyncEngine, notifier: InMemoryNotifier
) -> Generator[ApiHarness, None, None]:
    """App client over the seeded database with fake embeddings and notifier.

    Tests adjust ``api.gateway.vectors`` to place texts at chosen distances.
    """
    gateway = StaticEmbeddingGateway()

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with AsyncSession(seeded_engine, expire_on_commit=False) as app_session:
            yield app_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_embedding_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_answer_composer] = lambda: DeterministicStubClient()

    try:
        yield ApiHarness(client=TestClient(app), gateway=gateway, notifier=notifier)
    finally:
        app.dependency_overrides.clear()
