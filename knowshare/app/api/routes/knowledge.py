"""Knowledge endpoints - search, access requests and responses."""

from typing import Annotated, cast
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from knowshare.app.api.auth import get_current_context
from knowshare.app.api.dependencies import get_coordinator, get_tool_registry
from knowshare.app.db.context import RequestContext
from knowshare.app.knowledge.access_requests import AccessRequestCoordinator
from knowshare.app.models.access import (
    AccessRequestStatus,
    Decision,
    EnrichedAccessRequest,
    RequestDirection,
)
from knowshare.app.models.common import CamelModel
from knowshare.app.models.tools import GetInformationInput, RetrievalToolOutput
from knowshare.app.orchestration.tools import GET_INFORMATION, ToolRegistry

router = APIRouter(prefix="/knowledge", tags=["knowledge"])


class CreateAccessRequest(CamelModel):
    """Request body for POST /knowledge/request."""

    embedding_id: int = Field(..., description="Chunk to request access to")
    question: str = Field(..., min_length=1, description="Question that surfaced the chunk")
    conversation_id: UUID | None = Field(None, description="Conversation to resume later")


class CreateAccessResponse(CamelModel):
    """Response for POST /knowledge/request."""

    success: bool = True
    request_id: int


class RespondRequest(CamelModel):
    """Request body for POST /knowledge/respond."""

    request_id: int
    action: Decision
    response_content: str | None = Field(None, max_length=4000)


class RespondResponse(CamelModel):
    """Response for POST /knowledge/respond."""

    success: bool = True
    status: AccessRequestStatus


class RequestListResponse(CamelModel):
    """Response for GET /knowledge/requests."""

    requests: list[EnrichedAccessRequest]


@router.get("/search", response_model=RetrievalToolOutput)
async def search_knowledge(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    tools: Annotated[ToolRegistry, Depends(get_tool_registry)],
    question: Annotated[str, Query(max_length=2000)] = "",
) -> RetrievalToolOutput:
    """Run the tiered retrieval for the caller.

    An empty question returns empty tiers rather than an error.
    """
    result = await tools.invoke(GET_INFORMATION, ctx, GetInformationInput(question=question))
    return cast(RetrievalToolOutput, result)


@router.post("/request", response_model=CreateAccessResponse)
async def create_access_request(
    request: CreateAccessRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    coordinator: Annotated[AccessRequestCoordinator, Depends(get_coordinator)],
) -> CreateAccessResponse:
    """Ask the owner of a chunk for access.

    Returns:
        The pending request id

    Raises:
        ChunkNotFoundError, OwnKnowledgeError, AlreadySharedError,
        DuplicateRequestError: rendered as ``{"error": message}``
    """
    record = await coordinator.create(
        ctx.user_id,
        request.embedding_id,
        request.question,
        conversation_id=request.conversation_id,
    )
    return CreateAccessResponse(request_id=record.request_id)


@router.post("/respond", response_model=RespondResponse)
async def respond_to_request(
    request: RespondRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    coordinator: Annotated[AccessRequestCoordinator, Depends(get_coordinator)],
) -> RespondResponse:
    """Approve or deny a pending request the caller owns."""
    record = await coordinator.respond(
        ctx.user_id, request.request_id, request.action, request.response_content
    )
    return RespondResponse(status=record.status)


@router.get("/requests", response_model=RequestListResponse)
async def list_access_requests(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    coordinator: Annotated[AccessRequestCoordinator, Depends(get_coordinator)],
    direction: Annotated[RequestDirection, Query(alias="type")] = RequestDirection.received,
    status: Annotated[AccessRequestStatus | None, Query()] = None,
) -> RequestListResponse:
    """List requests the caller received, sent, or both, newest first."""
    requests = await coordinator.list_requests(ctx.user_id, direction, status)
    return RequestListResponse(requests=requests)
