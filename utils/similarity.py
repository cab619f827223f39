"""
Similarity helpers for ranking stored embeddings.

Provides:
- Cosine similarity between two vectors
- Threshold filtering and descending ranking of scored candidates
"""

from typing import List, Sequence, Tuple, TypeVar
import numpy as np

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1.0, 1.0]; 0.0 if either vector has zero length

    Raises:
        ValueError: If the vectors have different dimensions
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)

    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} vs {vb.shape[0]}")

    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0

    return float(np.dot(va, vb) / norm)


def rank_by_similarity(
    query: Sequence[float],
    candidates: List[Tuple[T, Sequence[float]]],
    threshold: float,
    limit: int
) -> List[Tuple[T, float]]:
    """
    Score candidates against a query vector and keep the best matches.

    Args:
        query: Query embedding
        candidates: (item, embedding) pairs
        threshold: Minimum similarity to keep
        limit: Maximum number of results

    Returns:
        (item, similarity) pairs sorted by descending similarity
    """
    scored = []
    for item, vector in candidates:
        if not vector or len(vector) != len(query):
            continue
        score = cosine_similarity(query, vector)
        if score >= threshold:
            scored.append((item, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit]
