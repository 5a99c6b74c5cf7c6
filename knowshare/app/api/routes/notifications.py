"""Notification endpoints - durable inbox and the realtime SSE stream."""

import json
import logging
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.api.auth import get_current_context
from knowshare.app.api.dependencies import get_notifier
from knowshare.app.db.context import RequestContext
from knowshare.app.db.engine import get_session
from knowshare.app.errors import NotFoundError
from knowshare.app.knowledge.inbox import (
    count_unread,
    delete_notification,
    list_notifications,
    mark_read,
)
from knowshare.app.models.common import CamelModel
from knowshare.app.models.events import NotificationOut
from knowshare.app.realtime.channels import authorize_channel
from knowshare.app.realtime.notifier import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])

HEARTBEAT_SECONDS = 15.0


class NotificationListResponse(CamelModel):
    """Response for GET /notifications."""

    notifications: list[NotificationOut]
    unread_count: int


class MarkReadRequest(CamelModel):
    """Request body for PATCH /notifications: specific ids, or all."""

    notification_ids: list[int] | None = None
    mark_all_as_read: bool = False

    @model_validator(mode="after")
    def _require_target(self) -> "MarkReadRequest":
        if not self.mark_all_as_read and not self.notification_ids:
            raise ValueError("Provide notificationIds or markAllAsRead")
        return self


class SuccessResponse(CamelModel):
    success: bool = True
    updated: int | None = Field(None, description="Rows affected, when meaningful")


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> NotificationListResponse:
    """List the caller's notifications, newest first, with the unread count."""
    notifications = await list_notifications(
        session, ctx.user_id, unread_only=unread_only, limit=limit
    )
    unread = await count_unread(session, ctx.user_id)
    return NotificationListResponse(notifications=notifications, unread_count=unread)


@router.patch("", response_model=SuccessResponse)
async def mark_notifications_read(
    body: MarkReadRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SuccessResponse:
    """Mark specific notifications, or all of them, as read."""
    updated = await mark_read(
        session,
        ctx.user_id,
        notification_ids=body.notification_ids,
        mark_all=body.mark_all_as_read,
    )
    return SuccessResponse(updated=updated)


@router.delete("/{notification_id}", response_model=SuccessResponse)
async def remove_notification(
    notification_id: int,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SuccessResponse:
    """Delete one of the caller's notifications."""
    if not await delete_notification(session, ctx.user_id, notification_id):
        raise NotFoundError("Notification not found")
    return SuccessResponse()


@router.get("/stream")
async def stream_notifications(
    request: Request,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    channel: Annotated[str, Query(min_length=1)],
) -> StreamingResponse:
    """Stream the caller's private channel via SSE.

    Args:
        request: Incoming request (used to detect client disconnects)
        ctx: Subscriber identity
        notifier: Realtime transport
        channel: Channel name; must be ``private-user-<caller id>``

    Returns:
        SSE stream of ``request-created`` and ``request-response`` events

    Raises:
        ChannelAuthorizationError: For any channel other than the caller's own
    """
    user_id = authorize_channel(ctx, channel)
    subscription = await notifier.subscribe(user_id)

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events."""
        try:
            yield ": connected\n\n"

            while not await request.is_disconnected():
                event = await subscription.next_event(timeout=HEARTBEAT_SECONDS)

                if event is None:
                    yield f": heartbeat {datetime.now(UTC).isoformat()}\n\n"
                    continue

                yield f"event: {event.channel_event}\n"
                yield f"data: {json.dumps(event.payload)}\n\n"
        finally:
            await subscription.close()
            logger.debug(f"SSE subscriber for {user_id} disconnected")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
