"""Domain errors for knowledge retrieval and access requests.

Every error carries the user-facing message and the HTTP status the API layer
renders it with. "Not found" and "not authorized" are one kind for
requests and resources the caller does not own; the API never reveals that
someone else's record exists.
"""

from fastapi import status


class KnowledgeShareError(Exception):
    """Base class for all domain errors."""

    message: str = "Something went wrong"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotFoundError(KnowledgeShareError):
    """Missing, or not visible to the caller."""

    message = "Not found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(KnowledgeShareError):
    """The request is well-formed but contradicts current state."""

    status_code = status.HTTP_409_CONFLICT


class ChunkNotFoundError(NotFoundError):
    message = "Embedding not found"


class RequestNotFoundOrResolvedError(NotFoundError):
    """Access request is missing, owned by someone else, or no longer pending."""

    message = "Request not found or already processed"


class ResourceNotFoundError(NotFoundError):
    message = "Resource not found"


class MessageNotFoundError(NotFoundError):
    message = "Message not found"


class SuggestionNotFoundError(NotFoundError):
    message = "Suggestion not found"


class OwnKnowledgeError(KnowledgeShareError):
    """Requester owns the chunk they asked for."""

    message = "Cannot request your own knowledge"
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadySharedError(ConflictError):
    message = "This knowledge is already shared with you"


class DuplicateRequestError(ConflictError):
    message = "You already have a pending request for this knowledge"


class RetrievalError(KnowledgeShareError):
    """Transient failure of the embedding service or the store."""

    message = "Knowledge search is temporarily unavailable, please try again"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class EmbeddingUnavailableError(RetrievalError):
    """Embedding generation failed or timed out."""


class ConfirmationStateError(ConflictError):
    """Suggestion was already confirmed or declined."""

    message = "This suggestion was already answered"


class ChannelAuthorizationError(KnowledgeShareError):
    message = "Unauthorized channel subscription"
    status_code = status.HTTP_403_FORBIDDEN
