"""Minimal auth dependency.

Stub implementation that extracts org_id/user_id from a bearer token or falls
back to the development identity. Session validation belongs to the identity
provider in front of this service.
"""

import uuid
from typing import Annotated

from fastapi import Header, HTTPException, status

from knowshare.app.db.context import RequestContext

DEFAULT_ORG_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
DEFAULT_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Either:
    - Parses a simple "Bearer <org_id>:<user_id>" format
    - Returns the development identity if no header is present

    Args:
        authorization: Authorization header (e.g., "Bearer <token>")

    Returns:
        RequestContext with org_id and user_id

    Raises:
        HTTPException: If authorization is invalid
    """
    if not authorization:
        return RequestContext(org_id=DEFAULT_ORG_ID, user_id=DEFAULT_USER_ID)

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:]  # Strip "Bearer "

    if ":" in token:
        try:
            org_id_str, user_id_str = token.split(":", 1)
            return RequestContext(
                org_id=uuid.UUID(org_id_str),
                user_id=uuid.UUID(user_id_str),
            )
        except (ValueError, AttributeError) as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token format (expected org_id:user_id)",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid bearer token",
        headers={"WWW-Authenticate": "Bearer"},
    )
