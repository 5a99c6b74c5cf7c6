"""Chat turn and suggestion confirmation wire models."""

from enum import Enum
from uuid import UUID

from pydantic import Field

from knowshare.app.models.access import AccessRequestStatus
from knowshare.app.models.common import CamelModel
from knowshare.app.models.knowledge import KnowledgeSource
from knowshare.app.models.tools import RequestKnowledgeOutput


class ConfirmationState(str, Enum):
    """Where a suggested access request stands with the user."""

    awaiting_confirmation = "awaiting_confirmation"
    confirmed = "confirmed"
    declined = "declined"


class SuggestionConfirmation(CamelModel):
    """A suggested knowledge holder, gated on the user's explicit confirmation.

    ``request_id`` is set once confirmed; ``outcome`` once the owner responded.
    """

    embedding_id: int
    owner_id: UUID
    owner_name: str
    question: str
    conversation_id: UUID | None = None
    state: ConfirmationState = ConfirmationState.awaiting_confirmation
    request_id: int | None = None
    outcome: AccessRequestStatus | None = None


class ChatRequest(CamelModel):
    """One user turn."""

    message: str = Field(..., min_length=1)
    conversation_id: UUID | None = None


class ChatResponse(CamelModel):
    """Assistant reply to one turn."""

    conversation_id: UUID
    answer: str
    answer_source: str
    knowledge_sources: list[KnowledgeSource] = Field(default_factory=list)
    suggestions: list[SuggestionConfirmation] = Field(default_factory=list)


class ConfirmSuggestionRequest(CamelModel):
    """The user's answer to "X may know about this. Ask them?".

    Identifies a suggestion surfaced by an earlier chat turn; the question and
    owner come from that turn, not from the client.
    """

    conversation_id: UUID
    embedding_id: int
    confirmed: bool


class ConfirmSuggestionResponse(CamelModel):
    confirmation: SuggestionConfirmation
    request: RequestKnowledgeOutput | None = None


class SuggestionListResponse(CamelModel):
    suggestions: list[SuggestionConfirmation]
