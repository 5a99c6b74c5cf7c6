"""Ownership-scoped query builders for the knowledge store.

Each retrieval tier is one of these statements; the tier predicate lives here
so no caller can forget the soft-delete filter or the grant exclusion.
"""

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import Select, and_, or_, select

from knowshare.app.db.models import KnowledgeChunk, KnowledgeGrant, Resource, User


def searchable_chunks() -> Select[tuple[KnowledgeChunk, str]]:
    """Select chunks with their owner's display name, minus soft-deleted resources.

    Returns:
        Statement yielding (KnowledgeChunk, owner_name) rows
    """
    return (
        select(KnowledgeChunk, User.name)
        .join(User, User.user_id == KnowledgeChunk.owner_user_id)
        .outerjoin(Resource, Resource.resource_id == KnowledgeChunk.resource_id)
        .where(or_(KnowledgeChunk.resource_id.is_(None), Resource.deleted_at.is_(None)))
    )


def granted_chunk_ids(user_id: UUID) -> Select[tuple[int]]:
    """Subquery of chunk ids shared with the given user."""
    return select(KnowledgeGrant.chunk_id).where(KnowledgeGrant.granted_to_user_id == user_id)


def query_own_chunks(user_id: UUID) -> Select[tuple[KnowledgeChunk, str]]:
    """Chunks owned by the user - always authorized."""
    return searchable_chunks().where(KnowledgeChunk.owner_user_id == user_id)


def query_shared_chunks(user_id: UUID) -> Select[tuple[KnowledgeChunk, str]]:
    """Chunks another member granted to the user."""
    return searchable_chunks().where(
        and_(
            KnowledgeChunk.chunk_id.in_(granted_chunk_ids(user_id)),
            KnowledgeChunk.owner_user_id != user_id,
        )
    )


def query_member_chunks(
    *,
    requester_id: UUID,
    member_ids: Collection[UUID],
    exclude_chunk_ids: Collection[int] = (),
) -> Select[tuple[KnowledgeChunk, str]]:
    """Chunks owned by other org members that the requester cannot see yet.

    Args:
        requester_id: User asking the question (their own chunks are excluded)
        member_ids: Organization member ids eligible as suggestion owners
        exclude_chunk_ids: Chunk ids already returned by earlier tiers

    Returns:
        Statement over chunks that are neither owned by nor granted to the requester
    """
    stmt = searchable_chunks().where(
        KnowledgeChunk.owner_user_id.in_(list(member_ids)),
        KnowledgeChunk.owner_user_id != requester_id,
        KnowledgeChunk.chunk_id.not_in(granted_chunk_ids(requester_id)),
    )

    if exclude_chunk_ids:
        stmt = stmt.where(KnowledgeChunk.chunk_id.not_in(list(exclude_chunk_ids)))

    return stmt
