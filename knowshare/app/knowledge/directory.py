"""Organization membership and member display lookups."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.models import User
from knowshare.app.models.access import RequestParty


async def list_org_member_ids(session: AsyncSession, org_id: UUID) -> list[UUID]:
    """List ids of every member of an organization."""
    result = await session.execute(select(User.user_id).where(User.org_id == org_id))
    return list(result.scalars().all())


async def get_member(session: AsyncSession, user_id: UUID) -> RequestParty | None:
    """Get display info for a user, or None if unknown."""
    result = await session.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        return None

    return RequestParty(id=user.user_id, name=user.name, email=user.email, image=user.image)
