"""Notification event models - what the realtime channel and inbox carry."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from knowshare.app.models.common import CamelModel

NotificationKind = Literal["request-created", "request-approved", "request-denied"]

# Channel event names: both resolutions travel as one "request-response" event
ChannelEventName = Literal["request-created", "request-response"]


class RequestCreatedPayload(CamelModel):
    """Sent to the owner when someone asks for their knowledge."""

    request_id: int
    question: str
    requester_id: UUID
    requester_name: str
    requester_email: str
    embedding_id: int
    chunk_preview: str
    created_at: datetime


class RequestResponsePayload(CamelModel):
    """Sent to the requester once the owner decided.

    Carries the original question and conversation so the requester's client
    can resume the stalled conversation without re-asking.
    """

    request_id: int
    status: Literal["approved", "denied"]
    response_content: str | None = None
    responded_at: datetime
    embedding_id: int | None
    conversation_id: UUID | None = None
    question: str


class NotificationEvent(BaseModel):
    """Ephemeral signal addressed to one user's channel.

    Loss only costs latency: the durable request/grant rows stay authoritative.
    """

    target_user_id: UUID
    kind: NotificationKind
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def channel_event(self) -> ChannelEventName:
        return "request-created" if self.kind == "request-created" else "request-response"

    @classmethod
    def request_created(
        cls, owner_id: UUID, payload: RequestCreatedPayload
    ) -> "NotificationEvent":
        return cls(
            target_user_id=owner_id,
            kind="request-created",
            payload=payload.model_dump(mode="json", by_alias=True),
        )

    @classmethod
    def request_resolved(
        cls, requester_id: UUID, payload: RequestResponsePayload
    ) -> "NotificationEvent":
        kind: NotificationKind = (
            "request-approved" if payload.status == "approved" else "request-denied"
        )
        return cls(
            target_user_id=requester_id,
            kind=kind,
            payload=payload.model_dump(mode="json", by_alias=True),
        )


class NotificationOut(CamelModel):
    """Durable inbox entry as returned by the API."""

    id: int
    kind: NotificationKind
    payload: dict[str, Any]
    read: bool
    created_at: datetime
