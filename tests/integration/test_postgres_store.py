"""PostgreSQL-specific checks for the knowledge store.

Validates what SQLite cannot: JSONB vectors and the partial unique index that
allows one pending request per (chunk, requester).

Run with: DATABASE_URL='postgresql://...' pytest -m postgres
"""

import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from knowshare.app.db.models import AccessRequest, KnowledgeChunk, Org, User


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_vectors_and_pending_uniqueness(postgres_engine: AsyncEngine) -> None:
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        org = Org(org_id=uuid.uuid4(), name="PG Org")
        owner = User(user_id=uuid.uuid4(), org_id=org.org_id, name="Owner", email="o@pg.test")
        asker = User(user_id=uuid.uuid4(), org_id=org.org_id, name="Asker", email="a@pg.test")
        session.add(org)
        await session.flush()
        session.add_all([owner, asker])
        await session.flush()

        chunk = KnowledgeChunk(
            kind="message",
            owner_user_id=owner.user_id,
            org_id=org.org_id,
            chunk_index=0,
            content="pg chunk",
            vector=[0.25, 0.5, 0.75],
        )
        session.add(chunk)
        await session.commit()

        stored = await session.get(KnowledgeChunk, chunk.chunk_id, populate_existing=True)
        assert stored is not None
        assert stored.vector == [0.25, 0.5, 0.75]

        def pending(status: str = "pending") -> AccessRequest:
            return AccessRequest(
                requester_id=asker.user_id,
                owner_id=owner.user_id,
                chunk_id=chunk.chunk_id,
                question="q",
                status=status,
                created_at=datetime.now(UTC),
            )

        # resolved requests never block a new pending one
        session.add_all([pending("denied"), pending("approved"), pending()])
        await session.commit()

        session.add(pending())
        with pytest.raises(IntegrityError):
            await session.commit()
        await session.rollback()
