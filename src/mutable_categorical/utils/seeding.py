"""Explicit random generators; nothing here touches global random state."""

from __future__ import annotations

import numpy as np


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Return a fresh numpy Generator seeded with *seed* (entropy if None)."""
    return np.random.default_rng(seed)


def spawn_rngs(rng: np.random.Generator, n: int) -> list[np.random.Generator]:
    """Derive *n* independent child generators from *rng*."""
    return rng.spawn(n)
