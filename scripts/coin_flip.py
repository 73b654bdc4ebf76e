#!/usr/bin/env python3
"""A fair coin toss on each engine."""

from __future__ import annotations

import argparse
from collections import Counter

from mutable_categorical.containers.categorical import MutableCategorical
from mutable_categorical.engines import available_engines
from mutable_categorical.utils.seeding import make_rng


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Toss a fair coin using a mutable categorical")
    parser.add_argument("--tosses", type=int, default=10, help="Number of tosses per engine")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    rng = make_rng(args.seed)

    for engine in available_engines():
        coin: MutableCategorical[str] = MutableCategorical(
            {"heads": 0.5, "tails": 0.5}, engine=engine
        )
        tosses = [coin.draw(rng) for _ in range(args.tosses)]
        print(f"{engine}: {' '.join(tosses)}  {dict(Counter(tosses))}")


if __name__ == "__main__":
    main()
