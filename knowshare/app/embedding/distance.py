"""Cosine distance between embedding vectors."""

import math
from collections.abc import Sequence


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute ``1 - cosine_similarity(a, b)``.

    Range is [0, 2]: 0 for identical direction, 1 for orthogonal, 2 for opposite.
    A zero vector has no direction and is treated as orthogonal to everything.

    Raises:
        ValueError: If the vectors have different dimensions.
    """
    if len(a) != len(b):
        raise ValueError(f"Dimension mismatch: {len(a)} != {len(b)}")

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))

    if norm_a == 0.0 or norm_b == 0.0:
        return 1.0

    return 1.0 - dot / (norm_a * norm_b)
