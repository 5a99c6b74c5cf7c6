"""Repository for suggestion confirmations.

One row per (user, conversation, embedding): a suggestion surfaced twice in the
same conversation keeps the answer the user already gave.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.models import SuggestionConfirmationRow
from knowshare.app.models.chat import ConfirmationState, SuggestionConfirmation


def _to_model(row: SuggestionConfirmationRow) -> SuggestionConfirmation:
    return SuggestionConfirmation(
        embedding_id=row.embedding_id,
        owner_id=row.owner_id,
        owner_name=row.owner_name,
        question=row.question,
        conversation_id=row.conversation_id,
        state=ConfirmationState(row.state),
        request_id=row.request_id,
    )


async def _get_row(
    session: AsyncSession, user_id: UUID, conversation_id: UUID, embedding_id: int
) -> SuggestionConfirmationRow | None:
    result = await session.execute(
        select(SuggestionConfirmationRow).where(
            SuggestionConfirmationRow.user_id == user_id,
            SuggestionConfirmationRow.conversation_id == conversation_id,
            SuggestionConfirmationRow.embedding_id == embedding_id,
        )
    )
    return result.scalar_one_or_none()


async def remember_suggestions(
    session: AsyncSession,
    user_id: UUID,
    conversation_id: UUID,
    suggestions: list[SuggestionConfirmation],
) -> list[SuggestionConfirmation]:
    """Store newly surfaced suggestions; return the stored state of each.

    Args:
        session: Database session
        user_id: User the suggestions were shown to
        conversation_id: Conversation they were shown in
        suggestions: Fresh suggestions, awaiting confirmation

    Returns:
        One confirmation per suggestion, in order, carrying any earlier answer
    """
    remembered: list[SuggestionConfirmation] = []
    now = datetime.now(UTC)

    for suggestion in suggestions:
        row = await _get_row(session, user_id, conversation_id, suggestion.embedding_id)
        if row is None:
            row = SuggestionConfirmationRow(
                user_id=user_id,
                conversation_id=conversation_id,
                embedding_id=suggestion.embedding_id,
                owner_id=suggestion.owner_id,
                owner_name=suggestion.owner_name,
                question=suggestion.question,
                state=ConfirmationState.awaiting_confirmation.value,
                request_id=None,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
        remembered.append(_to_model(row))

    await session.commit()
    return remembered


async def get_confirmation(
    session: AsyncSession, user_id: UUID, conversation_id: UUID, embedding_id: int
) -> SuggestionConfirmation | None:
    """Get the caller's confirmation for one suggestion, or None if never surfaced."""
    row = await _get_row(session, user_id, conversation_id, embedding_id)
    return _to_model(row) if row is not None else None


async def save_confirmation(
    session: AsyncSession, user_id: UUID, confirmation: SuggestionConfirmation
) -> None:
    """Persist a state transition of an already stored confirmation."""
    if confirmation.conversation_id is None:
        raise ValueError("Stored confirmations belong to a conversation")

    row = await _get_row(
        session, user_id, confirmation.conversation_id, confirmation.embedding_id
    )
    if row is None:
        raise ValueError(
            f"No stored suggestion {confirmation.embedding_id} in {confirmation.conversation_id}"
        )

    row.state = confirmation.state.value
    row.request_id = confirmation.request_id
    row.updated_at = datetime.now(UTC)
    await session.commit()


async def list_confirmations(
    session: AsyncSession, user_id: UUID, conversation_id: UUID
) -> list[SuggestionConfirmation]:
    """List the caller's suggestions in one conversation, oldest first."""
    result = await session.execute(
        select(SuggestionConfirmationRow)
        .where(
            SuggestionConfirmationRow.user_id == user_id,
            SuggestionConfirmationRow.conversation_id == conversation_id,
        )
        .order_by(SuggestionConfirmationRow.confirmation_id)
    )
    return [_to_model(row) for row in result.scalars().all()]
