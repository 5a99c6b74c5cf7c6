"""Embedding gateway with OpenAI integration.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic fallback when no key is present, for tests and dev.
"""

import asyncio
import hashlib
import logging
import math
import re
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from knowshare.app.config import Settings
from knowshare.app.errors import EmbeddingUnavailableError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingGateway(Protocol):
    """Protocol for embedding providers."""

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            EmbeddingUnavailableError: If the provider fails
        """
        ...

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, preserving order."""
        ...


class DeterministicStubEmbeddingGateway:
    """Hashed bag-of-words vectors (no API key required).

    Texts sharing words get small distances, so the stub is good enough to
    exercise retrieval end to end without a provider.
    """

    def __init__(self, dimensions: int = 64) -> None:
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        """Embed text as a normalized hashed word-count vector."""
        vector = [0.0] * self.dimensions
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimensions] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            return vector
        return [v / norm for v in vector]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class OpenAIEmbeddingGateway:
    """OpenAI-backed embedding gateway."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small"):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Embedding model name
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def embed(self, text: str) -> list[float]:
        """Embed one text via the embeddings endpoint."""
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts in a single API call."""
        if not texts:
            return []

        inputs = [text.replace("\n", " ") for text in texts]

        try:
            response = await self.client.embeddings.create(model=self.model, input=inputs)
        except OpenAIError as e:
            logger.error(f"OpenAI embedding call failed: {e}")
            raise EmbeddingUnavailableError() from e

        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


async def embed_with_timeout(
    gateway: EmbeddingGateway, text: str, timeout_ms: int
) -> list[float]:
    """Embed one text under a caller-imposed deadline.

    Raises:
        EmbeddingUnavailableError: On provider failure or timeout
    """
    try:
        return await asyncio.wait_for(gateway.embed(text), timeout=timeout_ms / 1000)
    except TimeoutError as e:
        logger.error(f"Embedding timed out after {timeout_ms}ms")
        raise EmbeddingUnavailableError() from e


async def embed_many_with_timeout(
    gateway: EmbeddingGateway, texts: list[str], timeout_ms: int
) -> list[list[float]]:
    """Batch variant of :func:`embed_with_timeout`."""
    try:
        return await asyncio.wait_for(gateway.embed_many(texts), timeout=timeout_ms / 1000)
    except TimeoutError as e:
        logger.error(f"Batch embedding of {len(texts)} texts timed out after {timeout_ms}ms")
        raise EmbeddingUnavailableError() from e


def create_embedding_gateway(settings: Settings) -> EmbeddingGateway:
    """Pick the embedding gateway for the configured environment.

    Returns:
        OpenAIEmbeddingGateway if an API key is configured, the stub otherwise
    """
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI embedding gateway")
        return OpenAIEmbeddingGateway(
            api_key=api_key.get_secret_value(),
            model=settings.embedding_model,
        )

    logger.warning("No OpenAI API key configured, using deterministic stub embeddings")
    return DeterministicStubEmbeddingGateway()
