#!/usr/bin/env python3
"""Compare the linked engine's tree shape with the Huffman optimum."""

from __future__ import annotations

import argparse

from mutable_categorical.utils.config import load_config
from mutable_categorical.utils.logging import ExperimentLogger
from mutable_categorical.utils.seeding import make_rng
from mutable_categorical.validation.tree_quality import run_tree_quality


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Measure linked-tree descent length under churn")
    parser.add_argument("--config", default="configs/default.yaml", help="Base config")
    parser.add_argument("--experiment", default=None, help="Experiment config override")
    parser.add_argument(
        "--set", action="append", default=[], dest="overrides", metavar="KEY=VALUE"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    config = load_config(
        default_path=args.config,
        experiment_path=args.experiment,
        overrides=args.overrides,
    )

    results = run_tree_quality(config, make_rng(config["seed"]))

    print("Distribution\tHuffman\t\tLinked\t\tRatio")
    for name, row in results.items():
        print(f"{name:<12}\t{row['huffman']:.4f}\t\t{row['linked']:.4f}\t\t{row['ratio']:.4f}")

    logger = ExperimentLogger.from_config(config, run_name="tree-quality")
    if logger is not None:
        with logger:
            logger.log_params(config["tree_quality"], prefix="tree_quality")
            for name, row in results.items():
                logger.log_metrics({f"{name}/{k}": v for k, v in row.items()})


if __name__ == "__main__":
    main()
