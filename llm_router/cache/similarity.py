"""Cosine similarity between embedding vectors."""

from collections.abc import Sequence

import numpy as np

from llm_router.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute the cosine similarity of two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1.0, 1.0]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))
