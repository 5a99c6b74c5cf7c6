"""Knowledge retrieval domain models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from knowshare.app.models.common import CamelModel, MessageRole, RetrievalTier


class ScoredChunk(BaseModel):
    """Chunk matched by one tier search, before it is shaped for output."""

    chunk_id: int
    owner_id: UUID
    owner_name: str
    content: str
    distance: float
    tier: RetrievalTier


class KnowledgeSource(CamelModel):
    """Chunk the requester may read: their own or one shared with them."""

    embedding_id: int
    embedding_content: str
    owner_id: UUID
    owner_name: str
    tier: Literal["own", "shared"]
    authorized: Literal[True] = True


class KnowledgeSourceSuggestion(CamelModel):
    """Colleague who may hold relevant knowledge. Never carries content."""

    embedding_id: int
    owner_id: UUID
    owner_name: str


class RetrievalResult(CamelModel):
    """Output of one tiered retrieval call."""

    knowledge_sources: list[KnowledgeSource] = Field(default_factory=list)
    knowledge_source_suggestions: list[KnowledgeSourceSuggestion] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "RetrievalResult":
        return cls()


class ResourceOut(CamelModel):
    """Knowledge-base resource as returned by the API."""

    resource_id: int
    org_id: UUID
    owner_user_id: UUID
    content: str
    chunk_count: int
    deleted: bool
    created_at: datetime


class MessageRecord(BaseModel):
    """Persisted dialogue turn."""

    message_id: int
    conversation_id: UUID
    role: MessageRole
    content: str
    chunk_count: int = 0
