"""Chat endpoints - one turn, the confirm/decline of a suggestion, and its outcome."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.api.auth import get_current_context
from knowshare.app.api.dependencies import (
    get_answer_composer,
    get_coordinator,
    get_embedding_gateway,
    get_tool_registry,
)
from knowshare.app.config import Settings, get_settings
from knowshare.app.db.context import RequestContext
from knowshare.app.db.engine import get_session
from knowshare.app.embedding.gateway import EmbeddingGateway
from knowshare.app.knowledge.access_requests import AccessRequestCoordinator
from knowshare.app.llm.client import AnswerComposer
from knowshare.app.models.chat import (
    ChatRequest,
    ChatResponse,
    ConfirmSuggestionRequest,
    ConfirmSuggestionResponse,
    SuggestionListResponse,
)
from knowshare.app.orchestration.chat import ChatOrchestrator
from knowshare.app.orchestration.tools import ToolRegistry

router = APIRouter(prefix="/chat", tags=["chat"])


def get_orchestrator(
    session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[EmbeddingGateway, Depends(get_embedding_gateway)],
    tools: Annotated[ToolRegistry, Depends(get_tool_registry)],
    composer: Annotated[AnswerComposer, Depends(get_answer_composer)],
    coordinator: Annotated[AccessRequestCoordinator, Depends(get_coordinator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ChatOrchestrator:
    return ChatOrchestrator(
        session,
        gateway,
        tools,
        composer,
        coordinator,
        embedding_timeout_ms=settings.embedding_timeout_ms,
    )


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    orchestrator: Annotated[ChatOrchestrator, Depends(get_orchestrator)],
) -> ChatResponse:
    """Answer one user message from own and shared knowledge.

    Suggestions come back awaiting confirmation; nothing is requested until
    the user confirms through ``POST /chat/confirm``.
    """
    return await orchestrator.handle_turn(ctx, request)


@router.post("/confirm", response_model=ConfirmSuggestionResponse)
async def confirm_suggestion(
    request: ConfirmSuggestionRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    orchestrator: Annotated[ChatOrchestrator, Depends(get_orchestrator)],
) -> ConfirmSuggestionResponse:
    """Confirm (create an access request) or decline a suggestion, once."""
    return await orchestrator.confirm_suggestion(ctx, request)


@router.get("/suggestions", response_model=SuggestionListResponse)
async def list_suggestions(
    conversation_id: Annotated[UUID, Query(alias="conversationId")],
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    orchestrator: Annotated[ChatOrchestrator, Depends(get_orchestrator)],
) -> SuggestionListResponse:
    """Suggestions surfaced in a conversation, with the owner's decision once made."""
    suggestions = await orchestrator.list_suggestions(ctx, conversation_id)
    return SuggestionListResponse(suggestions=suggestions)
