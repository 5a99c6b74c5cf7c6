"""Suggestion confirmation state machine.

    awaiting_confirmation --confirm--> confirmed --owner responds--> (outcome set)
    awaiting_confirmation --decline--> declined

A suggestion never becomes an access request without the user's explicit
confirmation. The owner's approve/deny is absorbed from the coordinator's
request-response event.
"""

from uuid import UUID

from knowshare.app.errors import ConfirmationStateError
from knowshare.app.models.access import AccessRequestStatus
from knowshare.app.models.chat import ConfirmationState, SuggestionConfirmation
from knowshare.app.models.events import RequestResponsePayload
from knowshare.app.models.knowledge import KnowledgeSourceSuggestion


def await_confirmation(
    suggestion: KnowledgeSourceSuggestion, question: str, conversation_id: UUID | None = None
) -> SuggestionConfirmation:
    """Wrap a retrieval suggestion so it waits for the user's answer."""
    return SuggestionConfirmation(
        embedding_id=suggestion.embedding_id,
        owner_id=suggestion.owner_id,
        owner_name=suggestion.owner_name,
        question=question,
        conversation_id=conversation_id,
    )


def confirm(confirmation: SuggestionConfirmation, request_id: int) -> SuggestionConfirmation:
    """Record that the user confirmed and the access request was created.

    Raises:
        ConfirmationStateError: If the suggestion was already answered
    """
    if confirmation.state is not ConfirmationState.awaiting_confirmation:
        raise ConfirmationStateError()

    return confirmation.model_copy(
        update={"state": ConfirmationState.confirmed, "request_id": request_id}
    )


def decline(confirmation: SuggestionConfirmation) -> SuggestionConfirmation:
    """Record that the user does not want to ask the owner.

    Raises:
        ConfirmationStateError: If the suggestion was already answered
    """
    if confirmation.state is not ConfirmationState.awaiting_confirmation:
        raise ConfirmationStateError()

    return confirmation.model_copy(update={"state": ConfirmationState.declined})


def absorb_response(
    confirmation: SuggestionConfirmation, payload: RequestResponsePayload
) -> SuggestionConfirmation:
    """Apply the owner's decision to a confirmed suggestion.

    Events for other requests are ignored and return the confirmation unchanged.

    Raises:
        ConfirmationStateError: If the suggestion was never confirmed
    """
    if confirmation.state is not ConfirmationState.confirmed:
        raise ConfirmationStateError()

    if payload.request_id != confirmation.request_id:
        return confirmation

    return confirmation.model_copy(update={"outcome": AccessRequestStatus(payload.status)})
