"""Test identities, vectors and fakes shared by the test suites."""

import asyncio
import math
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from knowshare.app.db.context import RequestContext
from knowshare.app.db.models import KnowledgeChunk, Resource
from knowshare.app.errors import EmbeddingUnavailableError
from knowshare.app.realtime.notifier import InMemoryNotifier

ORG_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_ORG_ID = uuid.UUID("00000000-0000-0000-0000-0000000000ff")

# Alice is the stub-auth default user
ALICE_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
BOB_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")
CAROL_ID = uuid.UUID("00000000-0000-0000-0000-000000000004")
# Member of another organization
MALLORY_ID = uuid.UUID("00000000-0000-0000-0000-000000000099")

ALICE = RequestContext(org_id=ORG_ID, user_id=ALICE_ID)
BOB = RequestContext(org_id=ORG_ID, user_id=BOB_ID)
CAROL = RequestContext(org_id=ORG_ID, user_id=CAROL_ID)
MALLORY = RequestContext(org_id=OTHER_ORG_ID, user_id=MALLORY_ID)

# Every test vector is compared against this query direction
QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0]
# Cosine distance to QUERY_VECTOR is exactly 0.5: dot 1, norms 1 and 2
EXACT_HALF_VECTOR = [1.0, 1.0, 1.0, 1.0]


def vector_at_distance(distance: float) -> list[float]:
    """Unit vector at the given cosine distance from QUERY_VECTOR (0 <= d <= 1)."""
    cos = 1.0 - distance
    return [cos, math.sqrt(max(0.0, 1.0 - cos * cos)), 0.0, 0.0]


def bearer(ctx: RequestContext) -> dict[str, str]:
    """Stub-auth header for a test identity."""
    return {"Authorization": f"Bearer {ctx.org_id}:{ctx.user_id}"}


class StaticEmbeddingGateway:
    """Embedding fake with explicit vectors per text.

    Unknown texts embed to ``default``. ``fail`` makes every call raise;
    ``delay`` makes every call sleep first (for timeout tests).
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        *,
        default: list[float] | None = None,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = default or QUERY_VECTOR
        self.fail = fail
        self.delay = delay
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise EmbeddingUnavailableError()
        return list(self.vectors.get(text, self.default))

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class FailingNotifier:
    """Notifier whose transport is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def publish(self, event: object) -> None:
        self.attempts += 1
        raise ConnectionError("realtime transport unavailable")

    async def subscribe(self, user_id: uuid.UUID) -> object:
        raise ConnectionError("realtime transport unavailable")

    async def close(self) -> None:
        return None


async def add_chunk(
    session: AsyncSession,
    owner: RequestContext,
    content: str,
    vector: list[float],
    *,
    deleted: bool = False,
) -> int:
    """Store a single-chunk resource with an explicit vector.

    Returns:
        The chunk id
    """
    now = datetime.now(UTC)
    resource = Resource(
        org_id=owner.org_id,
        owner_user_id=owner.user_id,
        content=content,
        deleted_at=now if deleted else None,
        created_at=now,
        updated_at=now,
    )
    session.add(resource)
    await session.flush()

    chunk = KnowledgeChunk(
        kind="resource",
        owner_user_id=owner.user_id,
        org_id=owner.org_id,
        resource_id=resource.resource_id,
        chunk_index=0,
        content=content,
        vector=vector,
    )
    session.add(chunk)
    await session.flush()
    chunk_id = chunk.chunk_id
    await session.commit()
    return chunk_id


@dataclass
class ApiHarness:
    """TestClient plus the fakes wired in behind it."""

    client: TestClient
    gateway: StaticEmbeddingGateway
    notifier: InMemoryNotifier
