"""Knowledge-base resource endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.api.auth import get_current_context
from knowshare.app.api.dependencies import get_embedding_gateway
from knowshare.app.config import Settings, get_settings
from knowshare.app.db.context import RequestContext
from knowshare.app.db.engine import get_session
from knowshare.app.embedding.gateway import EmbeddingGateway
from knowshare.app.knowledge.ingest import (
    create_resource,
    hard_delete_resource,
    list_resources,
    restore_resource,
    soft_delete_resource,
    update_resource,
)
from knowshare.app.models.common import CamelModel
from knowshare.app.models.knowledge import ResourceOut

router = APIRouter(prefix="/resources", tags=["resources"])


class ResourceBody(CamelModel):
    """Request body for POST /resources and PATCH /resources/{id}."""

    content: str = Field(..., min_length=1, max_length=100_000)


class ResourceListResponse(CamelModel):
    """Response for GET /resources."""

    resources: list[ResourceOut]


@router.post("", response_model=ResourceOut, status_code=status.HTTP_201_CREATED)
async def create_resource_endpoint(
    body: ResourceBody,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[EmbeddingGateway, Depends(get_embedding_gateway)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ResourceOut:
    """Create a resource; its chunks are embedded before anything is stored."""
    return await create_resource(
        session, ctx, body.content, gateway, timeout_ms=settings.embedding_timeout_ms
    )


@router.get("", response_model=ResourceListResponse)
async def list_resources_endpoint(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    include_deleted: Annotated[bool, Query(alias="includeDeleted")] = False,
) -> ResourceListResponse:
    """List the caller's resources, newest first."""
    resources = await list_resources(session, ctx, include_deleted=include_deleted)
    return ResourceListResponse(resources=resources)


@router.patch("/{resource_id}", response_model=ResourceOut)
async def update_resource_endpoint(
    resource_id: int,
    body: ResourceBody,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[EmbeddingGateway, Depends(get_embedding_gateway)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ResourceOut:
    """Replace content and regenerate chunks atomically."""
    return await update_resource(
        session,
        ctx,
        resource_id,
        body.content,
        gateway,
        timeout_ms=settings.embedding_timeout_ms,
    )


@router.delete("/{resource_id}", response_model=None)
async def delete_resource_endpoint(
    resource_id: int,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
    permanent: Annotated[bool, Query()] = False,
) -> ResourceOut | Response:
    """Soft-delete a resource, or remove it for good with ``?permanent=true``.

    Returns:
        The hidden resource, or 204 after a permanent delete
    """
    if permanent:
        await hard_delete_resource(session, ctx, resource_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return await soft_delete_resource(session, ctx, resource_id)


@router.post("/{resource_id}/restore", response_model=ResourceOut)
async def restore_resource_endpoint(
    resource_id: int,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ResourceOut:
    """Make a soft-deleted resource searchable again."""
    return await restore_resource(session, ctx, resource_id)
