"""Shared FastAPI dependencies for application-scoped collaborators.

The embedding gateway, notifier and answer composer are built once in the
lifespan and kept on ``app.state``; tests swap them via dependency overrides.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.config import Settings, get_settings
from knowshare.app.db.engine import get_session
from knowshare.app.embedding.gateway import EmbeddingGateway
from knowshare.app.knowledge.access_requests import AccessRequestCoordinator
from knowshare.app.llm.client import AnswerComposer
from knowshare.app.orchestration.tools import ToolRegistry, build_tool_registry
from knowshare.app.realtime.notifier import Notifier


def get_embedding_gateway(request: Request) -> EmbeddingGateway:
    return request.app.state.embedding_gateway


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_answer_composer(request: Request) -> AnswerComposer:
    return request.app.state.answer_composer


def get_coordinator(
    session: Annotated[AsyncSession, Depends(get_session)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccessRequestCoordinator:
    """Coordinator bound to the request's session."""
    return AccessRequestCoordinator(
        session, notifier, preview_chars=settings.chunk_preview_chars
    )


def get_tool_registry(
    session: Annotated[AsyncSession, Depends(get_session)],
    gateway: Annotated[EmbeddingGateway, Depends(get_embedding_gateway)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ToolRegistry:
    """Tool registry bound to the request's session."""
    return build_tool_registry(session, gateway, notifier, settings)
