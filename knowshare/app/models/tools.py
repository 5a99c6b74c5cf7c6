"""Tool contracts exposed to the conversational model."""

from uuid import UUID

from pydantic import Field

from knowshare.app.models.common import CamelModel
from knowshare.app.models.knowledge import RetrievalResult


class GetInformationInput(CamelModel):
    """Input of the retrieval tool."""

    question: str = Field(..., description="The user's question")


class RequestKnowledgeInput(CamelModel):
    """Input of the access-request tool. Only valid after the user confirmed."""

    embedding_id: int = Field(..., description="Embedding id of the knowledge to request")
    question: str = Field(
        ..., min_length=1, description="The original question that led to this request"
    )
    owner_name: str | None = Field(None, description="Owner name, echoed back for confirmation")
    conversation_id: UUID | None = Field(None, description="Conversation to resume on response")


class RequestKnowledgeOutput(CamelModel):
    """Result of the access-request tool: either a request id or an error message."""

    success: bool
    request_id: int | None = None
    message: str | None = None
    error: str | None = None


# Retrieval tool output: own/shared sources with content, suggestions without
RetrievalToolOutput = RetrievalResult
