"""Models package - re-exports for convenience."""

from knowshare.app.models.access import (
    AccessRequestRecord,
    AccessRequestStatus,
    Decision,
    EnrichedAccessRequest,
    GrantRecord,
    RequestDirection,
)
from knowshare.app.models.common import (
    CamelModel,
    ChunkKind,
    MessageRole,
    RetrievalBand,
    TierLimits,
)
from knowshare.app.models.events import (
    NotificationEvent,
    RequestCreatedPayload,
    RequestResponsePayload,
)
from knowshare.app.models.knowledge import (
    KnowledgeSource,
    KnowledgeSourceSuggestion,
    RetrievalResult,
    ScoredChunk,
)
from knowshare.app.models.tools import (
    GetInformationInput,
    RequestKnowledgeInput,
    RequestKnowledgeOutput,
)

__all__ = [
    "AccessRequestRecord",
    "AccessRequestStatus",
    "CamelModel",
    "ChunkKind",
    "Decision",
    "EnrichedAccessRequest",
    "GetInformationInput",
    "GrantRecord",
    "KnowledgeSource",
    "KnowledgeSourceSuggestion",
    "MessageRole",
    "NotificationEvent",
    "RequestCreatedPayload",
    "RequestDirection",
    "RequestKnowledgeInput",
    "RequestKnowledgeOutput",
    "RequestResponsePayload",
    "RetrievalBand",
    "RetrievalResult",
    "ScoredChunk",
    "TierLimits",
]
