"""Pearson chi-squared statistic and a Monte-Carlo p-value oracle."""

from __future__ import annotations

from typing import Iterable

import numpy as np

# Stop as soon as this many draws are at least as extreme as the measurement.
MAX_SAMPLES_AS_EXTREME = 10

_CHUNK_SIZE = 4096


def chi_squared_statistic(
    counts: Iterable[int], probabilities: Iterable[float], n_draws: int
) -> float:
    """Pearson's chi-squared of observed *counts* against ``n_draws * p``.

    Terms with zero squared error are skipped, so a zero-probability category
    that was never drawn contributes nothing instead of ``0 / 0``.
    """
    observed = np.asarray(list(counts), dtype=np.float64)
    expected = np.asarray(list(probabilities), dtype=np.float64) * n_draws
    error_sq = (observed - expected) ** 2
    nonzero = error_sq > 0.0
    with np.errstate(divide="ignore"):
        return float(np.sum(error_sq[nonzero] / expected[nonzero]))


def _count_as_extreme(
    chi_squared: float, dof: int, n_samples: int, rng: np.random.Generator
) -> tuple[int, int]:
    """Draw up to *n_samples* from chi2(*dof*), stopping once enough are as extreme.

    Returns ``(n_as_extreme, n_drawn)``.
    """
    n_as_extreme = 0
    n_drawn = 0
    while n_drawn < n_samples and n_as_extreme < MAX_SAMPLES_AS_EXTREME:
        chunk = min(_CHUNK_SIZE, n_samples - n_drawn)
        draws = rng.chisquare(dof, size=chunk) >= chi_squared
        hits = np.cumsum(draws)
        if hits[-1] + n_as_extreme >= MAX_SAMPLES_AS_EXTREME:
            # Stop exactly at the draw that reached the threshold.
            stop = int(np.argmax(hits + n_as_extreme >= MAX_SAMPLES_AS_EXTREME)) + 1
            return MAX_SAMPLES_AS_EXTREME, n_drawn + stop
        n_as_extreme += int(hits[-1])
        n_drawn += chunk
    return n_as_extreme, n_drawn


def p_value_is_less_than(
    chi_squared: float, dof: int, p_value: float, rng: np.random.Generator
) -> bool:
    """Return True if the p-value of *chi_squared* with *dof* degrees of freedom
    is below *p_value*.

    Uses Monte-Carlo integration: draws from the chi-squared distribution
    until ten are at least as extreme as the measurement (not significant)
    or ``10 / p_value`` draws have been made without that happening
    (significant).  Good enough for spotting obvious discrepancies.
    """
    if dof <= 0:
        return False
    max_samples = int(MAX_SAMPLES_AS_EXTREME / p_value)
    n_as_extreme, _ = _count_as_extreme(chi_squared, dof, max_samples, rng)
    return n_as_extreme < MAX_SAMPLES_AS_EXTREME


def estimate_p_value(
    chi_squared: float, dof: int, rng: np.random.Generator, n_samples: int = 100_000
) -> float:
    """Monte-Carlo estimate of ``P(X >= chi_squared)`` for ``X ~ chi2(dof)``."""
    if dof <= 0:
        return 1.0
    draws = rng.chisquare(dof, size=n_samples)
    return float(np.mean(draws >= chi_squared))
