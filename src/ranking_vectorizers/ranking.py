"""
Shared utilities for ranking documents by score.

1. Efficient top-k - np.argpartition for O(n) selection
2. Parallel batch ranking - ThreadPoolExecutor for query parallelism
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

import numpy as np

from ranking_vectorizers.config import DEFAULT_NUM_WORKERS

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Minimum queries before enabling parallelism
MIN_QUERIES_FOR_PARALLEL = 10

Query = TypeVar("Query")
Ranking = tuple["NDArray[np.int64]", "NDArray[np.float64]"]


def select_top_k(
    scores: NDArray[np.float64],
    top_k: int | None,
) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
    """
    Select top-k documents efficiently.

    Uses np.argpartition for O(n) selection when k << n,
    falling back to full sort when k is large. Equal scores keep
    ascending document order.

    Args:
        scores: Score array for all documents (N,)
        top_k: Number of top results (None for all)

    Returns:
        (sorted_indices, sorted_scores) in descending order
    """
    if top_k is not None and top_k < 0:
        raise ValueError(f"top_k must be non-negative, got {top_k}")

    n = len(scores)
    if top_k is not None and top_k < n:
        candidates = np.sort(np.argpartition(-scores, top_k)[:top_k])
        sorted_top_k = candidates[np.argsort(-scores[candidates], kind="stable")]
        return sorted_top_k.astype(np.int64), scores[sorted_top_k]

    sorted_indices = np.argsort(-scores, kind="stable").astype(np.int64)
    return sorted_indices, scores[sorted_indices]


def batch_rank_parallel(
    queries: Sequence[Query],
    rank_single: Callable[[Query], Ranking],
    num_workers: int = DEFAULT_NUM_WORKERS,
    min_queries_for_parallel: int = MIN_QUERIES_FOR_PARALLEL,
) -> list[Ranking]:
    """
    Rank many queries, in parallel once the batch is large enough.

    Args:
        queries: Queries in the order results should be returned
        rank_single: Ranks one query against a fixed, read-only index
        num_workers: Number of parallel workers
        min_queries_for_parallel: Minimum queries before enabling parallelism

    Returns:
        List of (sorted_indices, sorted_scores) tuples, one per query
    """
    if not queries:
        return []

    # For small batches, run sequentially
    if len(queries) < min_queries_for_parallel or num_workers <= 1:
        return [rank_single(query) for query in queries]

    with ThreadPoolExecutor(max_workers=num_workers) as executor:
        return list(executor.map(rank_single, queries))


__all__ = [
    "select_top_k",
    "batch_rank_parallel",
    "MIN_QUERIES_FOR_PARALLEL",
]
