#!/usr/bin/env python3
"""Statistical validation entry point: run the scale scenario on each engine."""

from __future__ import annotations

import argparse

from mutable_categorical.engines import available_engines
from mutable_categorical.utils.config import load_config
from mutable_categorical.utils.logging import ExperimentLogger
from mutable_categorical.utils.seeding import make_rng, spawn_rngs
from mutable_categorical.validation.harness import run_scale_scenario


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate mutable categorical engines against a reference mapping",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  python scripts/validate.py
  python scripts/validate.py --experiment configs/experiments/quick.yaml
  python scripts/validate.py --set engines=[linked] --set scenario.n_items=5000
  python scripts/validate.py --set mlflow.enabled=true
""",
    )
    parser.add_argument(
        "--config",
        default="configs/default.yaml",
        help="Path to base config (default: configs/default.yaml)",
    )
    parser.add_argument("--experiment", default=None, help="Path to experiment config override")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        dest="overrides",
        metavar="KEY=VALUE",
        help="Override config values (e.g. --set scenario.n_items=500)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    config = load_config(
        default_path=args.config,
        experiment_path=args.experiment,
        overrides=args.overrides,
    )

    engines = config.get("engines") or available_engines()
    print(f"Engines: {', '.join(engines)}")
    print(f"Items: {config['scenario']['n_items']}")

    rngs = spawn_rngs(make_rng(config["seed"]), len(engines))
    logger = ExperimentLogger.from_config(config, run_name="scale-scenario")
    if logger is not None:
        logger.log_params(config)
        logger.set_tag("engines", ",".join(engines))

    for engine, rng in zip(engines, rngs):
        print(f"\nStarting {engine} scale scenario")
        result = run_scale_scenario(engine, config, rng, logger=logger)
        print(
            f"{engine}: OK  max |total error| = {result['max_total_error']:.3e}  "
            f"convergence failures = {result['convergence_failures']}"
            f"/{result['convergence_checks']}"
        )

    if logger is not None:
        logger.end()


if __name__ == "__main__":
    main()
