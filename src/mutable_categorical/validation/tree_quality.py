"""How far the linked tree's shape drifts from the Huffman optimum under churn."""

from __future__ import annotations

from typing import Callable

import numpy as np
from tqdm import tqdm

from mutable_categorical.engines.linked_index import Handle, LinkedIndex
from mutable_categorical.stats.huffman import huffman_length

WeightGenerator = Callable[[np.random.Generator], float]

WEIGHT_GENERATORS: dict[str, WeightGenerator] = {
    "uniform": lambda rng: float(rng.random()),
    "exponential": lambda rng: float(rng.exponential()),
    # Mostly equal weights with rare heavy items.
    "resonance": lambda rng: 1.0 if rng.random() < 0.99 else 1000.0,
}


def measure_tree_quality(
    generator: WeightGenerator,
    rng: np.random.Generator,
    n_items: int,
    n_rounds: int,
    burn_in: int,
    ops_per_round: int,
) -> dict[str, float]:
    """Churn a Huffman-built :class:`LinkedIndex` and compare its shape to optimal.

    Each operation picks a random item; two thirds of the time it is
    reweighted, otherwise it is erased and a fresh item is added in its
    place.  After *burn_in* rounds the tree's expected descent length is
    averaged and compared with the Huffman length of the same weights.

    Returns:
        Dict with ``huffman``, ``linked`` and ``ratio`` (linked / huffman).
    """
    index, handles = LinkedIndex.from_weights(generator(rng) for _ in range(n_items))
    live: list[Handle] = list(handles)
    huffman_total = 0.0
    linked_total = 0.0

    for round_ in range(1, n_rounds + 1):
        for _ in range(ops_per_round):
            position = int(rng.integers(len(live)))
            if rng.integers(3) < 2:
                index.set_weight(live[position], generator(rng))
            else:
                index.erase(live[position])
                live[position] = index.add(generator(rng))
        if round_ > burn_in:
            huffman_total += huffman_length(index.weight(h) for h in live)
            linked_total += index.expected_depth()

    return {
        "huffman": huffman_total / max(n_rounds - burn_in, 1),
        "linked": linked_total / max(n_rounds - burn_in, 1),
        "ratio": linked_total / huffman_total if huffman_total > 0.0 else float("nan"),
    }


def run_tree_quality(config: dict, rng: np.random.Generator) -> dict[str, dict[str, float]]:
    """Run :func:`measure_tree_quality` for every configured weight distribution."""
    cfg = config["tree_quality"]
    results = {}
    for name in tqdm(cfg["distributions"], desc="Tree quality"):
        if name not in WEIGHT_GENERATORS:
            available = ", ".join(sorted(WEIGHT_GENERATORS))
            raise ValueError(f"Unknown weight distribution '{name}'. Available: {available}")
        results[name] = measure_tree_quality(
            WEIGHT_GENERATORS[name],
            rng,
            n_items=cfg["n_items"],
            n_rounds=cfg["n_rounds"],
            burn_in=cfg["burn_in"],
            ops_per_round=cfg["ops_per_round"],
        )
    return results
