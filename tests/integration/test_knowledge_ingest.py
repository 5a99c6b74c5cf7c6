"""Integration tests for resource ingestion, conversations and message embedding."""

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from knowshare.app.db.models import Conversation, KnowledgeChunk, Message, Resource
from knowshare.app.errors import (
    EmbeddingUnavailableError,
    MessageNotFoundError,
    ResourceNotFoundError,
)
from knowshare.app.knowledge.ingest import (
    conversation_title,
    create_resource,
    edit_message,
    embed_message,
    get_or_create_conversation,
    hard_delete_resource,
    list_resources,
    restore_resource,
    save_message,
    soft_delete_resource,
    update_resource,
)
from knowshare.app.models.common import MessageRole
from tests.helpers import ALICE, ALICE_ID, BOB, MALLORY, StaticEmbeddingGateway

PRICING = "Q3 pricing rises 20%. Enterprise deals need VP approval."


async def _chunk_contents(engine: AsyncEngine, **where: object) -> list[str]:
    async with AsyncSession(engine) as fresh:
        stmt = select(KnowledgeChunk.content).order_by(KnowledgeChunk.chunk_index)
        for column, value in where.items():
            stmt = stmt.where(getattr(KnowledgeChunk, column) == value)
        result = await fresh.execute(stmt)
        return list(result.scalars().all())


async def _count(engine: AsyncEngine, model: type) -> int:
    async with AsyncSession(engine) as fresh:
        result = await fresh.execute(select(func.count()).select_from(model))
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_create_resource_chunks_and_embeds(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    gateway = StaticEmbeddingGateway()

    resource = await create_resource(session, ALICE, PRICING, gateway)

    assert resource.owner_user_id == ALICE_ID
    assert resource.content == PRICING
    assert resource.chunk_count == 2
    assert not resource.deleted
    assert gateway.calls == ["Q3 pricing rises 20%.", "Enterprise deals need VP approval."]
    assert await _chunk_contents(seeded_engine, resource_id=resource.resource_id) == [
        "Q3 pricing rises 20%.",
        "Enterprise deals need VP approval.",
    ]


@pytest.mark.asyncio
async def test_create_resource_writes_nothing_when_embedding_fails(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    with pytest.raises(EmbeddingUnavailableError):
        await create_resource(session, ALICE, PRICING, StaticEmbeddingGateway(fail=True))

    assert await _count(seeded_engine, Resource) == 0
    assert await _count(seeded_engine, KnowledgeChunk) == 0


@pytest.mark.asyncio
async def test_update_resource_replaces_chunks(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    gateway = StaticEmbeddingGateway()
    resource = await create_resource(session, ALICE, PRICING, gateway)

    updated = await update_resource(
        session, ALICE, resource.resource_id, "Pricing is frozen for Q3.", gateway
    )

    assert updated.content == "Pricing is frozen for Q3."
    assert updated.chunk_count == 1
    assert await _chunk_contents(seeded_engine, resource_id=resource.resource_id) == [
        "Pricing is frozen for Q3."
    ]


@pytest.mark.asyncio
async def test_update_resource_keeps_old_chunks_on_embedding_failure(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    resource = await create_resource(session, ALICE, PRICING, StaticEmbeddingGateway())

    with pytest.raises(EmbeddingUnavailableError):
        await update_resource(
            session,
            ALICE,
            resource.resource_id,
            "New text.",
            StaticEmbeddingGateway(fail=True),
        )

    assert len(await _chunk_contents(seeded_engine, resource_id=resource.resource_id)) == 2


@pytest.mark.asyncio
async def test_only_the_author_may_change_a_resource(session: AsyncSession) -> None:
    gateway = StaticEmbeddingGateway()
    resource = await create_resource(session, ALICE, PRICING, gateway)

    for intruder in (BOB, MALLORY):
        with pytest.raises(ResourceNotFoundError):
            await update_resource(session, intruder, resource.resource_id, "mine now", gateway)
        with pytest.raises(ResourceNotFoundError):
            await soft_delete_resource(session, intruder, resource.resource_id)
        with pytest.raises(ResourceNotFoundError):
            await hard_delete_resource(session, intruder, resource.resource_id)


@pytest.mark.asyncio
async def test_soft_delete_and_restore_are_idempotent(session: AsyncSession) -> None:
    resource = await create_resource(session, ALICE, PRICING, StaticEmbeddingGateway())

    first = await soft_delete_resource(session, ALICE, resource.resource_id)
    second = await soft_delete_resource(session, ALICE, resource.resource_id)
    assert first.deleted and second.deleted
    # chunks are kept for restore
    assert second.chunk_count == 2

    assert await list_resources(session, ALICE) == []
    assert [r.resource_id for r in await list_resources(session, ALICE, include_deleted=True)] == [
        resource.resource_id
    ]

    restored = await restore_resource(session, ALICE, resource.resource_id)
    again = await restore_resource(session, ALICE, resource.resource_id)
    assert not restored.deleted and not again.deleted
    assert [r.resource_id for r in await list_resources(session, ALICE)] == [resource.resource_id]


@pytest.mark.asyncio
async def test_soft_deleted_resource_cannot_be_edited(session: AsyncSession) -> None:
    gateway = StaticEmbeddingGateway()
    resource = await create_resource(session, ALICE, PRICING, gateway)
    await soft_delete_resource(session, ALICE, resource.resource_id)

    with pytest.raises(ResourceNotFoundError):
        await update_resource(session, ALICE, resource.resource_id, "edit", gateway)


@pytest.mark.asyncio
async def test_hard_delete_cascades_to_chunks(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    resource = await create_resource(session, ALICE, PRICING, StaticEmbeddingGateway())

    await hard_delete_resource(session, ALICE, resource.resource_id)

    assert await _count(seeded_engine, Resource) == 0
    assert await _count(seeded_engine, KnowledgeChunk) == 0
    with pytest.raises(ResourceNotFoundError):
        await restore_resource(session, ALICE, resource.resource_id)


@pytest.mark.asyncio
async def test_list_resources_is_scoped_and_newest_first(session: AsyncSession) -> None:
    gateway = StaticEmbeddingGateway()
    older = await create_resource(session, ALICE, "First note.", gateway)
    newer = await create_resource(session, ALICE, "Second note. With two sentences.", gateway)
    await create_resource(session, BOB, "Bob's note.", gateway)

    listed = await list_resources(session, ALICE)

    assert [(r.resource_id, r.chunk_count) for r in listed] == [
        (newer.resource_id, 2),
        (older.resource_id, 1),
    ]


def test_conversation_title_truncates() -> None:
    assert conversation_title("Short question") == "Short question"
    assert conversation_title("x" * 60) == "x" * 50 + "..."


@pytest.mark.asyncio
async def test_get_or_create_conversation(session: AsyncSession) -> None:
    created = await get_or_create_conversation(session, ALICE, None, "What is Q3 pricing?")
    reused = await get_or_create_conversation(session, ALICE, created, "Follow-up")

    assert reused == created

    # someone else's (or an unknown) conversation id starts a fresh one
    bobs = await get_or_create_conversation(session, BOB, created, "Hijack")
    unknown = await get_or_create_conversation(session, ALICE, uuid.uuid4(), "New")
    assert bobs != created
    assert unknown not in (created, bobs)

    titles = (
        await session.execute(
            select(Conversation.title).where(Conversation.conversation_id == created)
        )
    ).scalar_one()
    assert titles == "What is Q3 pricing?"


@pytest.mark.asyncio
async def test_user_messages_become_knowledge(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    gateway = StaticEmbeddingGateway()
    conversation_id = await get_or_create_conversation(session, ALICE, None, PRICING)

    user_turn = await save_message(session, conversation_id, MessageRole.user, PRICING)
    assistant_turn = await save_message(
        session, conversation_id, MessageRole.assistant, "Noted. Anything else?"
    )

    embedded_user = await embed_message(session, ALICE, user_turn, gateway)
    embedded_assistant = await embed_message(session, ALICE, assistant_turn, gateway)

    assert embedded_user.chunk_count == 2
    assert embedded_assistant.chunk_count == 0
    assert await _chunk_contents(seeded_engine, kind="message") == [
        "Q3 pricing rises 20%.",
        "Enterprise deals need VP approval.",
    ]


@pytest.mark.asyncio
async def test_edit_message_regenerates_chunks(
    session: AsyncSession, seeded_engine: AsyncEngine
) -> None:
    gateway = StaticEmbeddingGateway()
    conversation_id = await get_or_create_conversation(session, ALICE, None, PRICING)
    message = await save_message(session, conversation_id, MessageRole.user, PRICING)
    await embed_message(session, ALICE, message, gateway)

    edited = await edit_message(
        session, ALICE, message.message_id, "Pricing is frozen.", gateway
    )

    assert edited.content == "Pricing is frozen."
    assert edited.chunk_count == 1
    assert await _chunk_contents(seeded_engine, message_id=message.message_id) == [
        "Pricing is frozen."
    ]

    async with AsyncSession(seeded_engine) as fresh:
        stored = await fresh.get(Message, message.message_id)
        assert stored is not None
        assert stored.content == "Pricing is frozen."


@pytest.mark.asyncio
async def test_edit_message_requires_own_conversation(session: AsyncSession) -> None:
    gateway = StaticEmbeddingGateway()
    conversation_id = await get_or_create_conversation(session, ALICE, None, PRICING)
    message = await save_message(session, conversation_id, MessageRole.user, PRICING)

    with pytest.raises(MessageNotFoundError):
        await edit_message(session, BOB, message.message_id, "Mine now", gateway)

    with pytest.raises(MessageNotFoundError):
        await edit_message(session, ALICE, 424242, "Nothing here", gateway)
