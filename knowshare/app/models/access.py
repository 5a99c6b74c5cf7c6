"""Access request and grant domain models."""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from knowshare.app.models.common import CamelModel

Decision = Literal["approve", "deny"]


class AccessRequestStatus(str, Enum):
    """Access request lifecycle state. ``pending`` is the only non-terminal one."""

    pending = "pending"
    approved = "approved"
    denied = "denied"

    @classmethod
    def from_decision(cls, decision: Decision) -> "AccessRequestStatus":
        return cls.approved if decision == "approve" else cls.denied


class RequestDirection(str, Enum):
    """Which side of a request the viewer is on."""

    received = "received"
    sent = "sent"
    all = "all"


class AccessRequestRecord(BaseModel):
    """Access request data record."""

    request_id: int
    requester_id: UUID
    owner_id: UUID
    chunk_id: int | None
    conversation_id: UUID | None
    question: str
    status: AccessRequestStatus
    response_note: str | None
    created_at: datetime
    responded_at: datetime | None


class GrantRecord(BaseModel):
    """Grant ledger entry."""

    grant_id: int
    chunk_id: int
    owner_id: UUID
    granted_to_user_id: UUID
    created_at: datetime


class RequestParty(CamelModel):
    """Display info for the requester or owner of a request."""

    id: UUID
    name: str
    email: str
    image: str | None = None


class ChunkPreview(CamelModel):
    """The requested chunk, or None content once the chunk was hard-deleted."""

    id: int | None
    content: str | None
    chunk_index: int | None
    kind: str | None


class ParentContext(CamelModel):
    """Full source the chunk was extracted from."""

    content: str
    role: str | None = None


class EnrichedAccessRequest(CamelModel):
    """Access request with party display info and chunk preview."""

    id: int
    question: str
    status: AccessRequestStatus
    response_content: str | None
    conversation_id: UUID | None
    created_at: datetime
    responded_at: datetime | None
    is_owner: bool
    embedding: ChunkPreview
    parent_context: ParentContext | None
    requester: RequestParty
    owner: RequestParty
