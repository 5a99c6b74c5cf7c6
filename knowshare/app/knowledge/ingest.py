"""Knowledge ingestion - resources, conversations and their embedded chunks.

A source's chunks are always replaced as a whole: embeddings are computed
first, then the old chunks are deleted and the new ones inserted in the same
commit, so a chunk vector is never stale and an embedding failure leaves the
previous chunks untouched.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.context import RequestContext
from knowshare.app.db.models import Conversation, KnowledgeChunk, Message, Resource
from knowshare.app.embedding.gateway import EmbeddingGateway, embed_many_with_timeout
from knowshare.app.errors import MessageNotFoundError, ResourceNotFoundError
from knowshare.app.knowledge.chunker import split_into_chunks
from knowshare.app.models.common import ChunkKind, MessageRole
from knowshare.app.models.knowledge import MessageRecord, ResourceOut

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50


async def _embed_chunks(
    gateway: EmbeddingGateway, text: str, timeout_ms: int
) -> list[tuple[str, list[float]]]:
    chunks = split_into_chunks(text)
    if not chunks:
        return []
    vectors = await embed_many_with_timeout(gateway, chunks, timeout_ms)
    return list(zip(chunks, vectors, strict=True))


def _add_chunks(
    session: AsyncSession,
    embedded: list[tuple[str, list[float]]],
    *,
    kind: ChunkKind,
    owner_user_id: UUID,
    org_id: UUID | None,
    resource_id: int | None = None,
    message_id: int | None = None,
) -> None:
    for index, (content, vector) in enumerate(embedded):
        session.add(
            KnowledgeChunk(
                kind=kind.value,
                owner_user_id=owner_user_id,
                org_id=org_id,
                resource_id=resource_id,
                message_id=message_id,
                chunk_index=index,
                content=content,
                vector=vector,
            )
        )


# --- Resources ---------------------------------------------------------------


def _to_resource_out(resource: Resource, chunk_count: int) -> ResourceOut:
    return ResourceOut(
        resource_id=resource.resource_id,
        org_id=resource.org_id,
        owner_user_id=resource.owner_user_id,
        content=resource.content,
        chunk_count=chunk_count,
        deleted=resource.deleted_at is not None,
        created_at=resource.created_at,
    )


async def _get_owned_resource(
    session: AsyncSession, ctx: RequestContext, resource_id: int
) -> Resource:
    """Load a resource the caller authored in their org.

    Raises:
        ResourceNotFoundError: Missing, in another org, or authored by someone else
    """
    result = await session.execute(
        select(Resource).where(
            Resource.resource_id == resource_id,
            Resource.org_id == ctx.org_id,
            Resource.owner_user_id == ctx.user_id,
        )
    )
    resource = result.scalar_one_or_none()

    if resource is None:
        raise ResourceNotFoundError()

    return resource


async def _count_chunks(session: AsyncSession, resource_id: int) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(KnowledgeChunk)
        .where(KnowledgeChunk.resource_id == resource_id)
    )
    return int(result.scalar_one())


async def create_resource(
    session: AsyncSession,
    ctx: RequestContext,
    content: str,
    gateway: EmbeddingGateway,
    *,
    timeout_ms: int = 5000,
) -> ResourceOut:
    """Create a knowledge-base resource and its embedded chunks.

    Args:
        session: Async database session
        ctx: Author identity and organization
        content: Resource text
        gateway: Embedding provider
        timeout_ms: Deadline for the embedding call

    Returns:
        The created resource

    Raises:
        EmbeddingUnavailableError: Nothing is written if embedding fails
    """
    embedded = await _embed_chunks(gateway, content, timeout_ms)
    now = datetime.now(UTC)

    resource = Resource(
        org_id=ctx.org_id,
        owner_user_id=ctx.user_id,
        content=content,
        deleted_at=None,
        created_at=now,
        updated_at=now,
    )
    session.add(resource)
    await session.flush()

    _add_chunks(
        session,
        embedded,
        kind=ChunkKind.resource,
        owner_user_id=ctx.user_id,
        org_id=ctx.org_id,
        resource_id=resource.resource_id,
    )

    out = _to_resource_out(resource, len(embedded))
    await session.commit()

    logger.info(f"Created resource {out.resource_id} with {len(embedded)} chunks")
    return out


async def update_resource(
    session: AsyncSession,
    ctx: RequestContext,
    resource_id: int,
    content: str,
    gateway: EmbeddingGateway,
    *,
    timeout_ms: int = 5000,
) -> ResourceOut:
    """Replace a resource's content and regenerate its chunks atomically.

    Grants on the old chunks go away with them; access requests keep their
    history with the chunk reference cleared.

    Raises:
        ResourceNotFoundError: Not the caller's resource, or soft-deleted
        EmbeddingUnavailableError: The old content and chunks stay in place
    """
    resource = await _get_owned_resource(session, ctx, resource_id)
    if resource.deleted_at is not None:
        raise ResourceNotFoundError()

    embedded = await _embed_chunks(gateway, content, timeout_ms)

    await session.execute(delete(KnowledgeChunk).where(KnowledgeChunk.resource_id == resource_id))
    _add_chunks(
        session,
        embedded,
        kind=ChunkKind.resource,
        owner_user_id=resource.owner_user_id,
        org_id=resource.org_id,
        resource_id=resource_id,
    )
    resource.content = content
    resource.updated_at = datetime.now(UTC)

    out = _to_resource_out(resource, len(embedded))
    await session.commit()

    logger.info(f"Regenerated {len(embedded)} chunks for resource {resource_id}")
    return out


async def soft_delete_resource(
    session: AsyncSession, ctx: RequestContext, resource_id: int
) -> ResourceOut:
    """Hide a resource and its chunks from every search. Idempotent."""
    resource = await _get_owned_resource(session, ctx, resource_id)

    if resource.deleted_at is None:
        resource.deleted_at = datetime.now(UTC)

    out = _to_resource_out(resource, await _count_chunks(session, resource_id))
    await session.commit()
    return out


async def restore_resource(
    session: AsyncSession, ctx: RequestContext, resource_id: int
) -> ResourceOut:
    """Undo a soft delete. Idempotent."""
    resource = await _get_owned_resource(session, ctx, resource_id)
    resource.deleted_at = None

    out = _to_resource_out(resource, await _count_chunks(session, resource_id))
    await session.commit()
    return out


async def hard_delete_resource(
    session: AsyncSession, ctx: RequestContext, resource_id: int
) -> None:
    """Permanently delete a resource.

    The database cascades the delete to its chunks and their grants, and
    clears the chunk reference of access requests that pointed at them.

    Raises:
        ResourceNotFoundError: Not the caller's resource
    """
    await _get_owned_resource(session, ctx, resource_id)
    await session.execute(delete(Resource).where(Resource.resource_id == resource_id))
    await session.commit()

    logger.info(f"Hard-deleted resource {resource_id}")


async def list_resources(
    session: AsyncSession, ctx: RequestContext, *, include_deleted: bool = False
) -> list[ResourceOut]:
    """List the caller's resources, newest first."""
    chunk_count = (
        select(func.count())
        .select_from(KnowledgeChunk)
        .where(KnowledgeChunk.resource_id == Resource.resource_id)
        .correlate(Resource)
        .scalar_subquery()
    )

    stmt = select(Resource, chunk_count).where(
        Resource.org_id == ctx.org_id, Resource.owner_user_id == ctx.user_id
    )
    if not include_deleted:
        stmt = stmt.where(Resource.deleted_at.is_(None))

    result = await session.execute(
        stmt.order_by(Resource.created_at.desc(), Resource.resource_id.desc())
    )
    return [_to_resource_out(resource, int(count)) for resource, count in result.all()]


# --- Conversations -----------------------------------------------------------


def conversation_title(first_message: str) -> str:
    """Title a new conversation after its opening message."""
    if len(first_message) > TITLE_MAX_CHARS:
        return first_message[:TITLE_MAX_CHARS] + "..."
    return first_message


async def get_or_create_conversation(
    session: AsyncSession,
    ctx: RequestContext,
    conversation_id: UUID | None,
    first_message: str,
) -> UUID:
    """Reuse the caller's conversation, or start a new one.

    A conversation id belonging to someone else is ignored, not an error: the
    caller simply gets a fresh conversation.
    """
    if conversation_id is not None:
        result = await session.execute(
            select(Conversation.conversation_id).where(
                Conversation.conversation_id == conversation_id,
                Conversation.user_id == ctx.user_id,
            )
        )
        if result.scalar_one_or_none() is not None:
            return conversation_id

    conversation = Conversation(
        user_id=ctx.user_id,
        org_id=ctx.org_id,
        title=conversation_title(first_message),
    )
    session.add(conversation)
    await session.flush()
    new_id = conversation.conversation_id
    await session.commit()
    return new_id


async def save_message(
    session: AsyncSession, conversation_id: UUID, role: MessageRole, content: str
) -> MessageRecord:
    """Append a dialogue turn to a conversation."""
    message = Message(conversation_id=conversation_id, role=role.value, content=content)
    session.add(message)
    await session.flush()

    record = MessageRecord(
        message_id=message.message_id,
        conversation_id=conversation_id,
        role=role,
        content=content,
    )
    await session.commit()
    return record


async def embed_message(
    session: AsyncSession,
    ctx: RequestContext,
    message: MessageRecord,
    gateway: EmbeddingGateway,
    *,
    timeout_ms: int = 5000,
) -> MessageRecord:
    """Chunk and embed a user message so it becomes searchable knowledge.

    Assistant and system turns are not knowledge of the user and are skipped.
    """
    if message.role is not MessageRole.user:
        return message

    embedded = await _embed_chunks(gateway, message.content, timeout_ms)
    if not embedded:
        return message

    _add_chunks(
        session,
        embedded,
        kind=ChunkKind.message,
        owner_user_id=ctx.user_id,
        org_id=ctx.org_id,
        message_id=message.message_id,
    )
    await session.commit()

    return message.model_copy(update={"chunk_count": len(embedded)})


async def edit_message(
    session: AsyncSession,
    ctx: RequestContext,
    message_id: int,
    content: str,
    gateway: EmbeddingGateway,
    *,
    timeout_ms: int = 5000,
) -> MessageRecord:
    """Rewrite one of the caller's messages and regenerate its chunks atomically.

    Raises:
        MessageNotFoundError: Missing, or in another user's conversation
        EmbeddingUnavailableError: The message and its chunks stay unchanged
    """
    result = await session.execute(
        select(Message)
        .join(Conversation, Conversation.conversation_id == Message.conversation_id)
        .where(Message.message_id == message_id, Conversation.user_id == ctx.user_id)
    )
    message = result.scalar_one_or_none()

    if message is None:
        raise MessageNotFoundError()

    role = MessageRole(message.role)
    embedded = (
        await _embed_chunks(gateway, content, timeout_ms) if role is MessageRole.user else []
    )

    await session.execute(delete(KnowledgeChunk).where(KnowledgeChunk.message_id == message_id))
    _add_chunks(
        session,
        embedded,
        kind=ChunkKind.message,
        owner_user_id=ctx.user_id,
        org_id=ctx.org_id,
        message_id=message_id,
    )
    message.content = content

    record = MessageRecord(
        message_id=message_id,
        conversation_id=message.conversation_id,
        role=role,
        content=content,
        chunk_count=len(embedded),
    )
    await session.commit()
    return record
