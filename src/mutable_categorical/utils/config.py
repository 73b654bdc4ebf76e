"""YAML config loading with layered merging and CLI overrides."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

# Plain decimal or scientific notation; "nan", "inf" and friends stay strings.
_NUMBER = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (returns a new dict)."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_overrides(config: dict, overrides: list[str]) -> dict:
    """Apply dot-notation CLI overrides like ``scenario.n_items=500``.

    Values are parsed as YAML scalars so ``"true"`` becomes ``True``,
    ``"1e-4"`` becomes ``0.0001``, etc.
    """
    for override in overrides:
        if "=" not in override:
            raise ValueError(f"Override must be key=value, got: {override!r}")
        key_path, raw_value = override.split("=", 1)
        value = yaml.safe_load(raw_value)
        # YAML 1.1 reads "1e-4" as a string; accept it as a float.
        if isinstance(value, str) and _NUMBER.match(value):
            value = float(value)
        keys = key_path.split(".")
        node = config
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value
    return config


def load_config(
    default_path: str | Path = "configs/default.yaml",
    experiment_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> dict[str, Any]:
    """Build a config by merging: default → experiment → CLI overrides."""
    config = load_yaml(default_path)
    if experiment_path:
        config = deep_merge(config, load_yaml(experiment_path))
    if overrides:
        config = apply_overrides(config, overrides)
    return config
