"""Dev seeding helper for stub authentication."""

import asyncio
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.api.auth import DEFAULT_ORG_ID, DEFAULT_USER_ID
from knowshare.app.db.engine import get_async_engine
from knowshare.app.db.models import Org, User

DEV_ORG_ID = DEFAULT_ORG_ID
DEV_USER_ID = DEFAULT_USER_ID
# A colleague in the same org, so suggestions have someone to point at
DEV_COLLEAGUE_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")

DEV_USERS = [
    (DEV_USER_ID, "Dev User", "dev@example.com"),
    (DEV_COLLEAGUE_ID, "Dev Colleague", "colleague@example.com"),
]


async def seed_dev_org_and_users(session: AsyncSession) -> list[uuid.UUID]:
    """Seed the dev org and its members for stub authentication.

    Idempotent - safe to run multiple times.

    Returns:
        Ids of the users created by this call
    """
    result = await session.execute(select(Org).where(Org.org_id == DEV_ORG_ID))
    if result.scalar_one_or_none() is None:
        session.add(Org(org_id=DEV_ORG_ID, name="Dev Org"))

    created: list[uuid.UUID] = []
    for user_id, name, email in DEV_USERS:
        user_result = await session.execute(select(User).where(User.user_id == user_id))
        if user_result.scalar_one_or_none() is None:
            session.add(User(user_id=user_id, org_id=DEV_ORG_ID, name=name, email=email))
            created.append(user_id)

    await session.commit()
    return created


async def main() -> None:
    async with AsyncSession(get_async_engine()) as session:
        created = await seed_dev_org_and_users(session)
    print(f"Dev seeding complete ({len(created)} new users)")


if __name__ == "__main__":
    asyncio.run(main())
