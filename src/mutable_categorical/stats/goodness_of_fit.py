"""Check that draws from a categorical match its weights."""

from __future__ import annotations

import numpy as np

from mutable_categorical.containers.categorical import MutableCategorical
from mutable_categorical.stats.chi_squared import (
    chi_squared_statistic,
    estimate_p_value,
    p_value_is_less_than,
)


def draw_statistics(
    categorical: MutableCategorical, rng: np.random.Generator, n_draws: int
) -> dict[str, float]:
    """Draw *n_draws* times and compute Pearson's chi-squared against the weights.

    Returns:
        Dict with ``chi_squared``, ``dof`` and ``n_draws``.
    """
    counts = categorical.draw_counts(rng, n_draws)
    handles = list(categorical.handles())
    chi_squared = chi_squared_statistic(
        (counts.get(h, 0) for h in handles),
        (categorical.probability(h) for h in handles),
        n_draws,
    )
    return {"chi_squared": chi_squared, "dof": len(handles) - 1, "n_draws": n_draws}


def random_draw_is_correct(
    categorical: MutableCategorical,
    rng: np.random.Generator,
    n_draws: int = 100_000,
    p_value: float = 1e-4,
) -> bool:
    """Return True unless the draws are inconsistent with the weights at *p_value*.

    An empty categorical, or one with zero total weight, passes iff sampling
    it yields the "no item" sentinel.
    """
    if len(categorical) == 0 or categorical.total <= 0.0:
        return categorical.sample(rng) is None
    stats = draw_statistics(categorical, rng, n_draws)
    return not p_value_is_less_than(stats["chi_squared"], int(stats["dof"]), p_value, rng)


def goodness_of_fit(
    categorical: MutableCategorical, rng: np.random.Generator, n_draws: int = 100_000
) -> dict[str, float]:
    """Like :func:`draw_statistics` plus an estimated ``p_value``."""
    stats = draw_statistics(categorical, rng, n_draws)
    stats["p_value"] = estimate_p_value(stats["chi_squared"], int(stats["dof"]), rng)
    return stats
