"""Vector arithmetic for semantic comparison."""

from __future__ import annotations

import math
from collections.abc import Sequence


def average_vectors(vectors: Sequence[Sequence[float]]) -> list[float] | None:
    """Element-wise mean of *vectors*, or ``None`` when there are none.

    Vectors of differing length are averaged over the shortest length.
    """
    if not vectors:
        return None
    dim = min(len(v) for v in vectors)
    count = len(vectors)
    return [sum(v[i] for v in vectors) / count for i in range(dim)]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*.

    Returns ``0.0`` if either vector has zero magnitude, and raises
    ``ValueError`` on a dimension mismatch.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    mag_a = math.sqrt(sum(x * x for x in a))
    mag_b = math.sqrt(sum(y * y for y in b))
    if mag_a == 0 or mag_b == 0:
        return 0.0
    return dot / (mag_a * mag_b)
