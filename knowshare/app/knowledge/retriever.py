"""Tiered semantic retrieval over the knowledge store.

One query vector, three ordered searches:

1. own      - chunks the requester owns
2. shared   - chunks another member granted to the requester
3. suggest  - chunks of other org members the requester cannot read yet,
              surfaced as *who* might know, never *what* they wrote

Every tier keeps distances strictly inside the configured band, sorts by
(distance, chunk_id) and applies its own cap. The call is all-or-nothing: any
embedding or store failure raises instead of returning partial tiers.
"""

import logging
import time
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import Select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.context import RequestContext
from knowshare.app.db.models import KnowledgeChunk
from knowshare.app.db.queries import query_member_chunks, query_own_chunks, query_shared_chunks
from knowshare.app.embedding.distance import cosine_distance
from knowshare.app.embedding.gateway import EmbeddingGateway, embed_with_timeout
from knowshare.app.errors import RetrievalError
from knowshare.app.knowledge.directory import list_org_member_ids
from knowshare.app.models.common import RetrievalBand, RetrievalTier, TierLimits
from knowshare.app.models.knowledge import (
    KnowledgeSource,
    KnowledgeSourceSuggestion,
    RetrievalResult,
    ScoredChunk,
)
from knowshare.app.utils.metrics import metrics

logger = logging.getLogger(__name__)


def rank_within_band(
    rows: Sequence[tuple[KnowledgeChunk, str]],
    query_vector: Sequence[float],
    *,
    band: RetrievalBand,
    limit: int,
    tier: RetrievalTier,
) -> list[ScoredChunk]:
    """Score rows against the query and keep the closest in-band matches.

    Pure function: no I/O. Chunks whose vector dimension differs from the
    query (e.g. written under a previous embedding model) are skipped.

    Args:
        rows: (chunk, owner_name) pairs from a tier query
        query_vector: Embedded query
        band: Open distance interval to keep
        limit: Maximum number of matches
        tier: Tier label attached to each match

    Returns:
        Matches ordered by ascending distance, ties by ascending chunk id
    """
    if limit <= 0:
        return []

    scored: list[ScoredChunk] = []

    for chunk, owner_name in rows:
        if len(chunk.vector) != len(query_vector):
            logger.warning(
                f"Skipping chunk {chunk.chunk_id}: dimension {len(chunk.vector)} "
                f"!= query dimension {len(query_vector)}"
            )
            continue

        distance = cosine_distance(query_vector, chunk.vector)

        if band.contains(distance):
            scored.append(
                ScoredChunk(
                    chunk_id=chunk.chunk_id,
                    owner_id=chunk.owner_user_id,
                    owner_name=owner_name,
                    content=chunk.content,
                    distance=distance,
                    tier=tier,
                )
            )

    scored.sort(key=lambda match: (match.distance, match.chunk_id))
    return scored[:limit]


class TieredRetriever:
    """Runs the three retrieval tiers for one requester."""

    def __init__(
        self,
        session: AsyncSession,
        gateway: EmbeddingGateway,
        *,
        band: RetrievalBand | None = None,
        limits: TierLimits | None = None,
        embedding_timeout_ms: int = 5000,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._band = band or RetrievalBand()
        self._limits = limits or TierLimits()
        self._embedding_timeout_ms = embedding_timeout_ms

    async def retrieve(self, query: str, ctx: RequestContext) -> RetrievalResult:
        """Find usable knowledge and possible knowledge holders for a query.

        Args:
            query: The user's question
            ctx: Requester identity and organization

        Returns:
            Own and shared chunks as knowledge sources, other members as suggestions

        Raises:
            EmbeddingUnavailableError: If the query could not be embedded
            RetrievalError: If any tier query failed
        """
        if not query or not query.strip():
            return RetrievalResult.empty()

        started = time.perf_counter()
        outcome = "error"

        try:
            query_vector = await embed_with_timeout(
                self._gateway, query, self._embedding_timeout_ms
            )
            result = await self._run_tiers(query_vector, ctx)
            outcome = "success"
            return result
        finally:
            metrics.record_retrieval(outcome, (time.perf_counter() - started) * 1000)

    async def _run_tiers(
        self, query_vector: list[float], ctx: RequestContext
    ) -> RetrievalResult:
        try:
            own = await self._search(
                query_own_chunks(ctx.user_id), query_vector, self._limits.own, "own"
            )
            shared = await self._search(
                query_shared_chunks(ctx.user_id), query_vector, self._limits.shared, "shared"
            )
            suggestions = await self._suggest(
                query_vector, ctx, exclude_chunk_ids={m.chunk_id for m in own + shared}
            )
        except SQLAlchemyError as e:
            logger.error(f"Tier search failed for user {ctx.user_id}: {e}")
            raise RetrievalError() from e

        metrics.inc_results("own", len(own))
        metrics.inc_results("shared", len(shared))
        metrics.inc_results("suggestion", len(suggestions))

        logger.info(
            "Tiered retrieval completed",
            extra={
                "structured": {
                    "user_id": str(ctx.user_id),
                    "own": len(own),
                    "shared": len(shared),
                    "suggestions": len(suggestions),
                }
            },
        )

        return RetrievalResult(
            knowledge_sources=[_to_source(match) for match in own + shared],
            knowledge_source_suggestions=[
                KnowledgeSourceSuggestion(
                    embedding_id=match.chunk_id,
                    owner_id=match.owner_id,
                    owner_name=match.owner_name,
                )
                for match in suggestions
            ],
        )

    async def _suggest(
        self,
        query_vector: list[float],
        ctx: RequestContext,
        *,
        exclude_chunk_ids: set[int],
    ) -> list[ScoredChunk]:
        if self._limits.suggestions <= 0:
            return []

        member_ids: list[UUID] = [
            member_id
            for member_id in await list_org_member_ids(self._session, ctx.org_id)
            if member_id != ctx.user_id
        ]

        if not member_ids:
            return []

        stmt = query_member_chunks(
            requester_id=ctx.user_id,
            member_ids=member_ids,
            exclude_chunk_ids=exclude_chunk_ids,
        )
        return await self._search(stmt, query_vector, self._limits.suggestions, "suggestion")

    async def _search(
        self,
        stmt: Select[tuple[KnowledgeChunk, str]],
        query_vector: list[float],
        limit: int,
        tier: RetrievalTier,
    ) -> list[ScoredChunk]:
        if limit <= 0:
            return []

        result = await self._session.execute(stmt.order_by(KnowledgeChunk.chunk_id))
        rows = [(chunk, owner_name) for chunk, owner_name in result.all()]
        return rank_within_band(rows, query_vector, band=self._band, limit=limit, tier=tier)


def _to_source(match: ScoredChunk) -> KnowledgeSource:
    tier = "own" if match.tier == "own" else "shared"
    return KnowledgeSource(
        embedding_id=match.chunk_id,
        embedding_content=match.content,
        owner_id=match.owner_id,
        owner_name=match.owner_name,
        tier=tier,
    )
