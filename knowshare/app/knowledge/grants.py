"""Grant ledger - which chunks are shared with which users.

Append-only: there is no update or delete. Grants disappear only when their
chunk is hard-deleted. ``record_grant`` is called exclusively by the access
request coordinator, inside the same transaction that approves the request.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.models import KnowledgeGrant
from knowshare.app.models.access import GrantRecord


def _to_record(grant: KnowledgeGrant) -> GrantRecord:
    return GrantRecord(
        grant_id=grant.grant_id,
        chunk_id=grant.chunk_id,
        owner_id=grant.owner_id,
        granted_to_user_id=grant.granted_to_user_id,
        created_at=grant.created_at,
    )


async def is_granted(session: AsyncSession, chunk_id: int, user_id: UUID) -> bool:
    """Check whether a chunk is shared with a user."""
    result = await session.execute(
        select(KnowledgeGrant.grant_id)
        .where(
            KnowledgeGrant.chunk_id == chunk_id,
            KnowledgeGrant.granted_to_user_id == user_id,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def record_grant(
    session: AsyncSession, *, chunk_id: int, owner_id: UUID, user_id: UUID
) -> GrantRecord:
    """Append a grant. Flushes but does not commit.

    Args:
        session: Session of the caller's open transaction
        chunk_id: Shared chunk
        owner_id: Owner of the chunk
        user_id: User receiving access

    Returns:
        The new grant
    """
    grant = KnowledgeGrant(
        chunk_id=chunk_id,
        owner_id=owner_id,
        granted_to_user_id=user_id,
        created_at=datetime.now(UTC),
    )
    session.add(grant)
    await session.flush()
    return _to_record(grant)


async def list_grants_for_user(session: AsyncSession, user_id: UUID) -> list[GrantRecord]:
    """List grants received by a user, oldest first."""
    result = await session.execute(
        select(KnowledgeGrant)
        .where(KnowledgeGrant.granted_to_user_id == user_id)
        .order_by(KnowledgeGrant.created_at, KnowledgeGrant.grant_id)
    )
    return [_to_record(grant) for grant in result.scalars().all()]
