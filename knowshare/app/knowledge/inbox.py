"""Durable notification inbox.

Each realtime event is also stored here, in the same transaction as the state
change it announces, so clients that missed the push still find it by polling.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.models import Notification
from knowshare.app.models.events import NotificationEvent, NotificationOut


def _to_out(row: Notification) -> NotificationOut:
    return NotificationOut(
        id=row.notification_id,
        kind=row.kind,  # type: ignore[arg-type]
        payload=row.payload,
        read=row.read,
        created_at=row.created_at,
    )


async def store_notification(session: AsyncSession, event: NotificationEvent) -> int:
    """Add an event to its target's inbox. Flushes but does not commit."""
    row = Notification(
        user_id=event.target_user_id,
        kind=event.kind,
        payload=event.payload,
        read=False,
        created_at=datetime.now(UTC),
    )
    session.add(row)
    await session.flush()
    return row.notification_id


async def list_notifications(
    session: AsyncSession, user_id: UUID, *, unread_only: bool = False, limit: int = 20
) -> list[NotificationOut]:
    """List a user's notifications, newest first."""
    stmt = select(Notification).where(Notification.user_id == user_id)

    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))

    stmt = stmt.order_by(
        Notification.created_at.desc(), Notification.notification_id.desc()
    ).limit(limit)

    result = await session.execute(stmt)
    return [_to_out(row) for row in result.scalars().all()]


async def count_unread(session: AsyncSession, user_id: UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return int(result.scalar_one())


async def mark_read(
    session: AsyncSession,
    user_id: UUID,
    *,
    notification_ids: Sequence[int] | None = None,
    mark_all: bool = False,
) -> int:
    """Mark the caller's notifications as read.

    Args:
        session: Database session
        user_id: Inbox owner; rows of other users are never touched
        notification_ids: Specific notifications to mark
        mark_all: Mark every unread notification instead

    Returns:
        Number of rows updated
    """
    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )

    if not mark_all:
        if not notification_ids:
            return 0
        stmt = stmt.where(Notification.notification_id.in_(list(notification_ids)))

    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount or 0


async def delete_notification(session: AsyncSession, user_id: UUID, notification_id: int) -> bool:
    """Delete one of the caller's notifications. Returns False if none matched."""
    result = await session.execute(
        delete(Notification).where(
            Notification.notification_id == notification_id,
            Notification.user_id == user_id,
        )
    )
    await session.commit()
    return bool(result.rowcount)
