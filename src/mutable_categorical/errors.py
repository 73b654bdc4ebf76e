"""Typed errors raised on precondition violations."""

from __future__ import annotations

import math


class CategoricalError(Exception):
    """Base class for all errors raised by mutable categorical containers."""


class EmptyContainerError(CategoricalError, LookupError):
    """Nothing can be drawn: the container is empty or has zero total weight."""


class InvalidHandleError(CategoricalError, LookupError):
    """The handle does not reference a currently-live item."""


class InvalidWeightError(CategoricalError, ValueError):
    """The weight is negative, NaN, infinite or not a number."""


def check_weight(weight: float) -> float:
    """Return *weight* as a float, raising if it is not finite and >= 0."""
    try:
        value = float(weight)
    except (TypeError, ValueError) as exc:
        raise InvalidWeightError(f"Weight must be a real number, got {weight!r}") from exc
    if not math.isfinite(value) or value < 0.0:
        raise InvalidWeightError(f"Weight must be finite and non-negative, got {value!r}")
    return value
