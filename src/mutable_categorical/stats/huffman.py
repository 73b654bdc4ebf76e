"""Optimal expected descent length of a sum tree."""

from __future__ import annotations

import heapq
from typing import Iterable


def huffman_length(weights: Iterable[float]) -> float:
    """Expected leaf depth of the Huffman tree over *weights*.

    This is the smallest mean number of descent steps per draw any binary
    sum tree over these weights can achieve.
    """
    heap = [float(w) for w in weights]
    if len(heap) < 2:
        return 0.0
    heapq.heapify(heap)
    total_length = 0.0
    while len(heap) > 1:
        merged = heapq.heappop(heap) + heapq.heappop(heap)
        total_length += merged
        heapq.heappush(heap, merged)
    total = heap[0]
    return total_length / total if total > 0.0 else 0.0
