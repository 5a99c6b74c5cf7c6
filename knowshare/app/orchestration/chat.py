"""Chat orchestrator - one user turn through the tool contracts.

The orchestrator never writes access-request or grant tables itself: search
goes through ``getInformation`` and confirmed suggestions through
``requestKnowledge``. Each suggestion shown to the user is stored, so it can be
answered once, and picks up the owner's decision from the coordinator.
"""

import logging
from typing import cast
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.context import RequestContext
from knowshare.app.db.suggestions import (
    get_confirmation,
    list_confirmations,
    remember_suggestions,
    save_confirmation,
)
from knowshare.app.embedding.gateway import EmbeddingGateway
from knowshare.app.errors import (
    ConfirmationStateError,
    EmbeddingUnavailableError,
    SuggestionNotFoundError,
)
from knowshare.app.knowledge.access_requests import AccessRequestCoordinator
from knowshare.app.knowledge.ingest import embed_message, get_or_create_conversation, save_message
from knowshare.app.llm.client import AnswerComposer
from knowshare.app.models.chat import (
    ChatRequest,
    ChatResponse,
    ConfirmationState,
    ConfirmSuggestionRequest,
    ConfirmSuggestionResponse,
    SuggestionConfirmation,
)
from knowshare.app.models.common import MessageRole
from knowshare.app.models.tools import (
    GetInformationInput,
    RequestKnowledgeInput,
    RequestKnowledgeOutput,
    RetrievalToolOutput,
)
from knowshare.app.orchestration.confirmation import (
    absorb_response,
    await_confirmation,
    confirm,
    decline,
)
from knowshare.app.orchestration.tools import GET_INFORMATION, REQUEST_KNOWLEDGE, ToolRegistry

logger = logging.getLogger(__name__)


class ChatOrchestrator:
    """Runs chat turns and suggestion confirmations for one request."""

    def __init__(
        self,
        session: AsyncSession,
        gateway: EmbeddingGateway,
        tools: ToolRegistry,
        composer: AnswerComposer,
        coordinator: AccessRequestCoordinator,
        *,
        embedding_timeout_ms: int = 5000,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._tools = tools
        self._composer = composer
        self._coordinator = coordinator
        self._embedding_timeout_ms = embedding_timeout_ms

    async def handle_turn(self, ctx: RequestContext, request: ChatRequest) -> ChatResponse:
        """Persist the user turn, search, answer and persist the reply.

        The user's message is embedded after retrieval so the question never
        matches itself. A failed message embedding is logged and does not fail
        the turn; a failed retrieval does.

        Raises:
            RetrievalError: If the knowledge search failed
        """
        conversation_id = await get_or_create_conversation(
            self._session, ctx, request.conversation_id, request.message
        )
        user_message = await save_message(
            self._session, conversation_id, MessageRole.user, request.message
        )

        retrieval = cast(
            RetrievalToolOutput,
            await self._tools.invoke(
                GET_INFORMATION, ctx, GetInformationInput(question=request.message)
            ),
        )

        try:
            await embed_message(
                self._session,
                ctx,
                user_message,
                self._gateway,
                timeout_ms=self._embedding_timeout_ms,
            )
        except EmbeddingUnavailableError:
            logger.warning(f"Could not embed message {user_message.message_id}, continuing")

        answer = await self._composer.compose_answer(
            question=request.message,
            sources=retrieval.knowledge_sources,
            suggestions=retrieval.knowledge_source_suggestions,
        )
        await save_message(self._session, conversation_id, MessageRole.assistant, answer.text)

        suggestions = await remember_suggestions(
            self._session,
            ctx.user_id,
            conversation_id,
            [
                await_confirmation(suggestion, request.message, conversation_id)
                for suggestion in retrieval.knowledge_source_suggestions
            ],
        )

        return ChatResponse(
            conversation_id=conversation_id,
            answer=answer.text,
            answer_source=answer.source,
            knowledge_sources=retrieval.knowledge_sources,
            suggestions=await self._with_outcomes(ctx, suggestions),
        )

    async def confirm_suggestion(
        self, ctx: RequestContext, request: ConfirmSuggestionRequest
    ) -> ConfirmSuggestionResponse:
        """Apply the user's confirm/decline to a suggestion from an earlier turn.

        Declining creates nothing. Confirming calls ``requestKnowledge``; if the
        coordinator refuses, the suggestion stays awaiting confirmation and the
        reason is returned alongside it.

        Raises:
            SuggestionNotFoundError: If no turn of the caller's surfaced this suggestion
            ConfirmationStateError: If the suggestion was already confirmed or declined
        """
        confirmation = await get_confirmation(
            self._session, ctx.user_id, request.conversation_id, request.embedding_id
        )
        if confirmation is None:
            raise SuggestionNotFoundError()

        if confirmation.state is not ConfirmationState.awaiting_confirmation:
            raise ConfirmationStateError()

        if not request.confirmed:
            confirmation = decline(confirmation)
            await save_confirmation(self._session, ctx.user_id, confirmation)
            return ConfirmSuggestionResponse(confirmation=confirmation)

        output = cast(
            RequestKnowledgeOutput,
            await self._tools.invoke(
                REQUEST_KNOWLEDGE,
                ctx,
                RequestKnowledgeInput(
                    embedding_id=confirmation.embedding_id,
                    question=confirmation.question,
                    owner_name=confirmation.owner_name,
                    conversation_id=confirmation.conversation_id,
                ),
            ),
        )

        if output.success and output.request_id is not None:
            confirmation = confirm(confirmation, output.request_id)
            await save_confirmation(self._session, ctx.user_id, confirmation)

        return ConfirmSuggestionResponse(confirmation=confirmation, request=output)

    async def list_suggestions(
        self, ctx: RequestContext, conversation_id: UUID
    ) -> list[SuggestionConfirmation]:
        """Suggestions shown in one of the caller's conversations, with owner decisions."""
        suggestions = await list_confirmations(self._session, ctx.user_id, conversation_id)
        return await self._with_outcomes(ctx, suggestions)

    async def _with_outcomes(
        self, ctx: RequestContext, suggestions: list[SuggestionConfirmation]
    ) -> list[SuggestionConfirmation]:
        resolved: list[SuggestionConfirmation] = []

        for suggestion in suggestions:
            if (
                suggestion.state is ConfirmationState.confirmed
                and suggestion.request_id is not None
            ):
                payload = await self._coordinator.resolution_for(
                    ctx.user_id, suggestion.request_id
                )
                if payload is not None:
                    suggestion = absorb_response(suggestion, payload)
            resolved.append(suggestion)

        return resolved
