"""Tests for the scale scenario harness and the tree quality experiment."""

from __future__ import annotations

import numpy as np
import pytest

from mutable_categorical.containers.categorical import MutableCategorical
from mutable_categorical.utils.logging import ExperimentLogger
from mutable_categorical.validation.harness import (
    ValidationError,
    entry_mismatch,
    have_equal_entries,
    run_scale_scenario,
)
from mutable_categorical.validation.tree_quality import WEIGHT_GENERATORS, measure_tree_quality, run_tree_quality


class _RecordingLogger:
    """Stands in for ExperimentLogger and remembers what was logged."""

    def __init__(self) -> None:
        self.metrics: dict[str, float] = {}

    def log_metric(self, key: str, value: float, step: int | None = None) -> None:
        self.metrics[key] = value

    def log_metrics(self, metrics: dict[str, float], step: int | None = None) -> None:
        self.metrics.update(metrics)


def _scenario_config(**overrides: object) -> dict:
    scenario = {
        "n_items": 1000,
        "check_below": 100,
        "n_draws": 100_000,
        "p_value": 1e-4,
        "tolerance": 1e-8,
        "max_convergence_failures": 1,
    }
    scenario.update(overrides)
    return {"scenario": scenario}


def test_have_equal_entries(engine: str) -> None:
    cat = MutableCategorical.from_weights([0.5, 0.25], engine=engine)
    assert have_equal_entries({0: 0.5, 1: 0.25}, cat)
    assert not have_equal_entries({0: 0.5}, cat)
    assert not have_equal_entries({0: 0.5, 2: 0.25}, cat)
    assert "weight" in (entry_mismatch({0: 0.5, 1: 0.3}, cat) or "")


def test_scale_scenario(engine: str, rng: np.random.Generator) -> None:
    """1000 categories built, reweighted and erased against a reference dict,
    with chi-squared checks whenever fewer than 100 categories exist."""
    logger = _RecordingLogger()
    result = run_scale_scenario(engine, _scenario_config(), rng, logger=logger)  # type: ignore[arg-type]
    assert result["n_items"] == 1000
    assert result["max_total_error"] < 1e-8
    # 100 during creation, 99 while deleting down from 99 to 1, and the empty check.
    assert result["convergence_checks"] == 200
    assert result["convergence_failures"] <= 1
    assert f"{engine}/max_total_error" in logger.metrics


def test_scale_scenario_small(engine: str, rng: np.random.Generator) -> None:
    result = run_scale_scenario(
        engine, _scenario_config(n_items=50, check_below=10, n_draws=10_000), rng
    )
    assert result["convergence_checks"] == 20


def test_validation_error_is_raised_on_mismatch(monkeypatch: pytest.MonkeyPatch) -> None:
    original = MutableCategorical.set_weight

    def broken(self: MutableCategorical, handle: object, weight: float) -> None:
        original(self, handle, weight / 2.0)

    monkeypatch.setattr(MutableCategorical, "set_weight", broken)
    with pytest.raises(ValidationError, match="modify"):
        run_scale_scenario(
            "linked",
            _scenario_config(n_items=10, check_below=0),
            np.random.default_rng(0),
        )


def test_tree_quality_close_to_huffman(rng: np.random.Generator) -> None:
    result = measure_tree_quality(
        WEIGHT_GENERATORS["uniform"], rng, n_items=500, n_rounds=10, burn_in=5, ops_per_round=50
    )
    assert result["huffman"] > 0.0
    # Huffman is optimal; the incremental tree can only be as good or worse.
    assert result["ratio"] >= 1.0 - 1e-9
    assert result["ratio"] < 2.0


def test_run_tree_quality_all_distributions(rng: np.random.Generator) -> None:
    config = {
        "tree_quality": {
            "distributions": ["uniform", "exponential", "resonance"],
            "n_items": 200,
            "n_rounds": 4,
            "burn_in": 2,
            "ops_per_round": 20,
        }
    }
    results = run_tree_quality(config, rng)
    assert set(results) == {"uniform", "exponential", "resonance"}


def test_run_tree_quality_unknown_distribution(rng: np.random.Generator) -> None:
    config = {
        "tree_quality": {
            "distributions": ["cauchy"],
            "n_items": 10,
            "n_rounds": 1,
            "burn_in": 0,
            "ops_per_round": 1,
        }
    }
    with pytest.raises(ValueError, match="Unknown weight distribution"):
        run_tree_quality(config, rng)


def test_logger_disabled_by_default(default_config: dict) -> None:
    assert ExperimentLogger.from_config(default_config) is None
