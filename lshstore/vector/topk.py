"""
Top-k selection over LSH candidates with an exact dot-product rerank.

Stored and query vectors are unit length, so the dot product is the cosine
similarity.
"""

import heapq
import logging

import numpy as np

from lshstore.vector.lsh import LSHIndex
from lshstore.vector.storage import VectorStorage

logger = logging.getLogger(__name__)


def gather_candidates(
    storage: VectorStorage,
    lsh: LSHIndex,
    query: np.ndarray,
    k: int,
) -> list[int]:
    """
    Return candidate slots for ``query`` in ascending slot order.

    Falls back to every live slot when the LSH union cannot fill
    ``min(k, storage.count)`` results, which includes the empty union.
    """
    candidates = lsh.candidates(query)
    wanted = min(k, storage.count)
    if len(candidates) < wanted:
        logger.debug(
            "LSH returned %d candidates for k=%d, scanning all %d vectors",
            len(candidates), k, storage.count,
        )
        return list(storage.live_slots())
    return sorted(candidates)


def select_top_k(
    storage: VectorStorage,
    query: np.ndarray,
    slots: list[int],
    k: int,
) -> list[tuple[int, float]]:
    """
    Score ``slots`` against ``query`` and keep the ``k`` best.

    A bounded min-heap holds the current best. A candidate displaces the
    minimum only if its score is strictly greater, so among equal scores the
    earlier slot in ``slots`` wins.

    Returns:
        ``(slot, score)`` pairs sorted by descending score.
    """
    if k <= 0 or not slots:
        return []

    scores = storage.matrix()[slots] @ query

    # Entries are (score, -order, slot): among equal scores the later one is the heap minimum
    heap: list[tuple[float, int, int]] = []
    for order, (slot, score) in enumerate(zip(slots, scores)):
        item = (float(score), -order, slot)
        if len(heap) < k:
            heapq.heappush(heap, item)
        elif item[0] > heap[0][0]:
            heapq.heapreplace(heap, item)

    heap.sort(key=lambda item: (-item[0], -item[1]))
    return [(slot, score) for score, _, slot in heap]
