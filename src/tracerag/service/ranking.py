"""Similarity scoring and top-K selection over scanned candidates."""

import math
from collections.abc import Iterable, Sequence

from tracerag.service.store.models import DocumentEntry, SearchHit


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        vec_a: First embedding vector
        vec_b: Second embedding vector

    Returns:
        float: Cosine similarity in [-1, 1], or 0.0 if either vector has zero norm

    Raises:
        ValueError: If the vectors differ in length
    """
    if len(vec_a) != len(vec_b):
        raise ValueError(
            f"Vector dimensions must match: {len(vec_a)} != {len(vec_b)}"
        )

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    magnitude_a = math.sqrt(sum(a * a for a in vec_a))
    magnitude_b = math.sqrt(sum(b * b for b in vec_b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0

    return dot_product / (magnitude_a * magnitude_b)


def rank_and_filter(
    query: Sequence[float],
    candidates: Iterable[tuple[DocumentEntry, Sequence[float]]],
    threshold: float,
    max_results: int,
) -> list[SearchHit]:
    """Score every candidate and keep the best ones above a threshold.

    Hits are ordered by similarity descending; equal scores are ordered by
    document id ascending so the result is deterministic.

    Args:
        query: Query embedding
        candidates: (document, embedding) pairs as returned by scan_candidates
        threshold: Minimum similarity, inclusive, in [0, 1]
        max_results: Maximum number of hits to return, at least 1

    Returns:
        list[SearchHit]: At most max_results hits, all scoring >= threshold

    Raises:
        ValueError: On an empty query, an out-of-range threshold or
            max_results, or a candidate whose length differs from the query
    """
    if not query:
        raise ValueError("Query embedding cannot be null or empty")
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"Similarity threshold must be between 0 and 1, got {threshold}")
    if max_results <= 0:
        raise ValueError(f"max_results must be positive, got {max_results}")

    hits = []
    for document, embedding in candidates:
        score = cosine_similarity(query, embedding)
        if score >= threshold:
            hits.append(SearchHit(document=document, similarity_score=score))

    hits.sort(key=_ranking_key)
    return hits[:max_results]


def _ranking_key(hit: SearchHit) -> tuple[float, int]:
    document_id = hit.document_id if hit.document_id is not None else 0
    return (-hit.similarity_score, document_id)
