"""Brute-force cosine ranking over segment records."""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from notefinder.models import SegmentRecord


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity over the shared leading dimensions.

    Returns 0.0 when either vector is empty or has zero magnitude.
    """
    n = min(len(a), len(b))
    if n == 0:
        return 0.0
    va = np.asarray(a[:n], dtype="float64")
    vb = np.asarray(b[:n], dtype="float64")
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def rank(
    query: Sequence[float], candidates: Sequence[SegmentRecord], k: int
) -> List[Tuple[SegmentRecord, float]]:
    """Return up to ``k`` candidates with their scores, best first.

    Ties keep the order of ``candidates``.
    """
    if k <= 0 or not candidates:
        return []
    scores = np.array([cosine_similarity(query, c.embedding) for c in candidates])
    order = np.argsort(-scores, kind="stable")[:k]
    return [(candidates[i], float(scores[i])) for i in order]


def top_k(
    query: Sequence[float], candidates: Sequence[SegmentRecord], k: int
) -> List[SegmentRecord]:
    return [record for record, _ in rank(query, candidates, k)]
