"""Abstract base index engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Hashable, Iterator

import numpy as np


class BaseIndex(ABC):
    """Interface that every weight index engine must implement.

    An engine stores weights only; labels are kept by the container.  Each
    live weight is addressed by an opaque, hashable *handle*.  Internally
    every handle also maps to a small integer *key* so that batch sampling
    can return plain numpy arrays.
    """

    #: Whether a handle survives the removal of a different item.
    stable_handles: bool = True

    @abstractmethod
    def add(self, weight: float) -> Hashable:
        """Insert a new weight and return its handle."""

    @abstractmethod
    def erase(self, handle: Hashable) -> Hashable | None:
        """Remove the weight at *handle*.

        Returns some remaining handle (which one is unspecified), or ``None``
        when no handle is worth reporting.
        """

    @abstractmethod
    def set_weight(self, handle: Hashable, weight: float) -> None:
        """Change the weight at *handle* in place."""

    @abstractmethod
    def weight(self, handle: Hashable) -> float:
        """Return the weight at *handle*."""

    @abstractmethod
    def sample(self, u: float) -> Hashable:
        """Return the handle selected by a uniform variate *u* in ``[0, 1)``."""

    @abstractmethod
    def sample_batch(self, u: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`sample`, returning an int64 array of keys."""

    @abstractmethod
    def key(self, handle: Hashable) -> int:
        """Map a live handle to its integer key."""

    @abstractmethod
    def handle(self, key: int) -> Hashable:
        """Map an integer key (as returned by :meth:`sample_batch`) to a handle."""

    @abstractmethod
    def handles(self) -> Iterator[Hashable]:
        """Yield every live handle in engine-defined order."""

    @abstractmethod
    def is_live(self, handle: Hashable) -> bool:
        """Return True if *handle* references a live weight."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every weight."""

    @property
    @abstractmethod
    def total(self) -> float:
        """Sum of all weights."""

    @abstractmethod
    def __len__(self) -> int: ...

    def rebuild(self) -> None:
        """Recompute cached sums from scratch.  No-op by default."""
