"""Scale scenario: build, reweight and tear down a categorical against a reference."""

from __future__ import annotations

import math
from typing import Mapping

import numpy as np
from tqdm import tqdm

from mutable_categorical.containers.categorical import MutableCategorical
from mutable_categorical.stats.goodness_of_fit import random_draw_is_correct
from mutable_categorical.utils.logging import ExperimentLogger


class ValidationError(RuntimeError):
    """A categorical disagreed with its reference mapping or its weights."""


def entry_mismatch(
    reference: Mapping[int, float], categorical: MutableCategorical, tolerance: float = 1e-8
) -> str | None:
    """Describe the first difference between *reference* and *categorical*, or None."""
    if len(reference) != len(categorical):
        return f"size {len(categorical)} != reference size {len(reference)}"
    seen = 0
    weight_sum = 0.0
    for label, weight in categorical.items():
        seen += 1
        if label not in reference:
            return f"unexpected category {label!r}"
        if abs(weight - reference[label]) > tolerance:
            return f"category {label!r} has weight {weight}, expected {reference[label]}"
        weight_sum += weight
    if seen != len(reference):
        return f"iterated {seen} categories, expected {len(reference)}"
    if abs(weight_sum - categorical.total) > tolerance:
        return f"total {categorical.total} != sum of weights {weight_sum}"
    return None


def have_equal_entries(
    reference: Mapping[int, float], categorical: MutableCategorical, tolerance: float = 1e-8
) -> bool:
    """True if *categorical* holds exactly the labels and weights in *reference*."""
    return entry_mismatch(reference, categorical, tolerance) is None


def run_scale_scenario(
    engine: str,
    config: dict,
    rng: np.random.Generator,
    logger: ExperimentLogger | None = None,
) -> dict[str, float]:
    """Run the create / modify / delete scenario on one engine.

    Steps: add ``n_items`` random weights → reweight every category in
    shuffled order → erase categories in random order until empty.  The
    full mapping is compared with a reference dict after every step, and
    draws are chi-squared tested while fewer than ``check_below`` categories
    exist.

    Returns:
        Dict with ``n_items``, ``max_total_error``, ``convergence_checks``
        and ``convergence_failures``.
    """
    cfg = config["scenario"]
    n_items = cfg["n_items"]
    check_below = cfg.get("check_below", 100)
    n_draws = cfg.get("n_draws", 100_000)
    p_value = cfg.get("p_value", 1e-4)
    tolerance = cfg.get("tolerance", 1e-8)
    max_failures = cfg.get("max_convergence_failures", 0)

    categorical: MutableCategorical[int] = MutableCategorical(engine=engine)
    reference: dict[int, float] = {}
    stats = {"max_total_error": 0.0, "convergence_checks": 0, "convergence_failures": 0}
    step = 0

    def check(phase: str) -> None:
        mismatch = entry_mismatch(reference, categorical, tolerance)
        if mismatch is not None:
            raise ValidationError(f"[{engine}] {phase} step {step}: {mismatch}")
        error = abs(categorical.total - math.fsum(reference.values()))
        stats["max_total_error"] = max(stats["max_total_error"], error)

    def check_draws(phase: str) -> None:
        stats["convergence_checks"] += 1
        if not random_draw_is_correct(categorical, rng, n_draws=n_draws, p_value=p_value):
            stats["convergence_failures"] += 1
            if logger is not None:
                logger.log_metric(f"{engine}/convergence_failure", 1.0, step=step)
            if stats["convergence_failures"] > max_failures:
                raise ValidationError(
                    f"[{engine}] {phase} step {step}: draws inconsistent with weights "
                    f"at p < {p_value} ({len(categorical)} categories)"
                )

    # ── creation ──────────────────────────────────────────────────────────
    for label in tqdm(range(n_items), desc=f"{engine}: create", leave=False):
        step += 1
        weight = float(rng.random())
        reference[label] = weight
        categorical.add(label, weight)
        check("create")
        if label < check_below:
            check_draws("create")

    # ── modification ──────────────────────────────────────────────────────
    handles = list(categorical.handles())
    shuffled = [handles[i] for i in rng.permutation(len(handles))]
    for handle in tqdm(shuffled, desc=f"{engine}: modify", leave=False):
        step += 1
        weight = float(rng.random())
        categorical.set_weight(handle, weight)
        reference[categorical.label(handle)] = weight
        check("modify")

    # ── deletion ──────────────────────────────────────────────────────────
    pbar = tqdm(total=n_items, desc=f"{engine}: delete", leave=False)
    while len(categorical) > 0:
        step += 1
        handles = list(categorical.handles())
        handle = handles[int(rng.integers(len(handles)))]
        del reference[categorical.label(handle)]
        categorical.erase(handle)
        check("delete")
        if len(categorical) < check_below:
            check_draws("delete")
        pbar.update(1)
    pbar.close()

    if logger is not None:
        logger.log_metrics(
            {f"{engine}/{k}": float(v) for k, v in stats.items()},
            step=step,
        )
    return {"n_items": n_items, **stats}
