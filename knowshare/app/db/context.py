"""Request context for tenancy enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Request context containing org and user identity.

    Every retrieval tier and coordinator operation is scoped by it.
    """

    org_id: UUID
    user_id: UUID
