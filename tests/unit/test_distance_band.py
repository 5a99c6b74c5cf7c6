"""Unit tests for cosine distance, the distance band and in-band ranking."""

import math
import uuid

import pytest
from pydantic import ValidationError

from knowshare.app.db.models import KnowledgeChunk
from knowshare.app.embedding.distance import cosine_distance
from knowshare.app.knowledge.retriever import rank_within_band
from knowshare.app.models.common import RetrievalBand, TierLimits
from tests.helpers import EXACT_HALF_VECTOR, QUERY_VECTOR, vector_at_distance

OWNER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")


def _row(chunk_id: int, vector: list[float]) -> tuple[KnowledgeChunk, str]:
    chunk = KnowledgeChunk(
        chunk_id=chunk_id,
        kind="resource",
        owner_user_id=OWNER_ID,
        chunk_index=0,
        content=f"chunk {chunk_id}",
        vector=vector,
    )
    return (chunk, "Owner")


def test_cosine_distance_identical_orthogonal_opposite() -> None:
    assert cosine_distance([1.0, 2.0], [2.0, 4.0]) == pytest.approx(0.0, abs=1e-12)
    assert cosine_distance([1.0, 0.0], [0.0, 3.0]) == pytest.approx(1.0)
    assert cosine_distance([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(2.0)


def test_cosine_distance_exact_half() -> None:
    """The test fixture vector sits at exactly 0.5 with no rounding."""
    assert cosine_distance(QUERY_VECTOR, EXACT_HALF_VECTOR) == 0.5


def test_cosine_distance_zero_vector_is_orthogonal() -> None:
    assert cosine_distance([0.0, 0.0], [1.0, 0.0]) == 1.0


def test_cosine_distance_dimension_mismatch_raises() -> None:
    with pytest.raises(ValueError, match="Dimension mismatch"):
        cosine_distance([1.0, 0.0], [1.0, 0.0, 0.0])


def test_vector_at_distance_helper() -> None:
    for distance in (0.2, 0.4999, 0.5001):
        vector = vector_at_distance(distance)
        assert math.isclose(cosine_distance(QUERY_VECTOR, vector), distance, abs_tol=1e-9)


def test_band_is_open_on_both_ends() -> None:
    band = RetrievalBand()

    assert band.lower_bound == 0.01
    assert band.upper_bound == 0.5
    assert not band.contains(0.01)
    assert band.contains(0.0101)
    assert band.contains(0.4999)
    assert not band.contains(0.5)
    assert not band.contains(0.5001)
    assert not band.contains(0.0)


def test_band_rejects_inverted_bounds() -> None:
    with pytest.raises(ValidationError):
        RetrievalBand(lower_bound=0.5, upper_bound=0.5)

    with pytest.raises(ValidationError):
        RetrievalBand(lower_bound=0.6, upper_bound=0.2)


def test_tier_limits_defaults_and_validation() -> None:
    limits = TierLimits()
    assert (limits.own, limits.shared, limits.suggestions) == (4, 4, 2)

    with pytest.raises(ValidationError):
        TierLimits(own=-1)


def test_rank_within_band_filters_orders_and_caps() -> None:
    rows = [
        _row(1, vector_at_distance(0.3)),
        _row(2, vector_at_distance(0.1)),
        _row(3, EXACT_HALF_VECTOR),  # on the upper bound
        _row(4, QUERY_VECTOR),  # restatement of the query
        _row(5, vector_at_distance(0.2)),
    ]

    matches = rank_within_band(rows, QUERY_VECTOR, band=RetrievalBand(), limit=2, tier="own")

    assert [m.chunk_id for m in matches] == [2, 5]
    assert all(m.tier == "own" for m in matches)
    assert matches[0].distance < matches[1].distance


def test_rank_within_band_breaks_ties_by_chunk_id() -> None:
    vector = vector_at_distance(0.25)
    rows = [_row(9, vector), _row(3, vector), _row(7, vector)]

    matches = rank_within_band(rows, QUERY_VECTOR, band=RetrievalBand(), limit=4, tier="shared")

    assert [m.chunk_id for m in matches] == [3, 7, 9]


def test_rank_within_band_skips_dimension_mismatch() -> None:
    rows = [_row(1, [0.9, 0.1]), _row(2, vector_at_distance(0.2))]

    matches = rank_within_band(rows, QUERY_VECTOR, band=RetrievalBand(), limit=4, tier="own")

    assert [m.chunk_id for m in matches] == [2]


def test_rank_within_band_zero_limit() -> None:
    rows = [_row(1, vector_at_distance(0.2))]

    assert rank_within_band(rows, QUERY_VECTOR, band=RetrievalBand(), limit=0, tier="own") == []
