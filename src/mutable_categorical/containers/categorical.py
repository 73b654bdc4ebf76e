"""Mutable categorical distribution over arbitrary labels."""

from __future__ import annotations

from collections import Counter
from typing import Callable, Generic, Hashable, Iterable, Iterator, Mapping, Protocol, TypeVar

import numpy as np

from mutable_categorical.engines import get_engine_class
from mutable_categorical.engines.base import BaseIndex
from mutable_categorical.engines.dense_index import DenseIndex
from mutable_categorical.engines.linked_index import LinkedIndex
from mutable_categorical.errors import EmptyContainerError, InvalidHandleError, check_weight

T = TypeVar("T")


class UniformSource(Protocol):
    """Anything with a ``random()`` method returning a float in ``[0, 1)``.

    ``numpy.random.Generator`` and ``random.Random`` both qualify.
    """

    def random(self) -> float: ...


class MutableCategorical(Generic[T]):
    """A categorical distribution whose categories can change.

    Each category is a *label* with a non-negative weight, and is drawn with
    probability ``weight / total``.  Categories can be added, erased,
    reweighted and drawn in O(log n).  Every call that mutates or queries a
    specific category takes the *handle* returned by :meth:`add`.

    Two engines are available:

    * ``"linked"`` (default): handles are :class:`~.linked_index.Handle`
      tuples and stay valid until their own category is erased.
    * ``"dense"``: handles are positions ``0..len-1``.  Erasing a category
      moves the last category into the freed position, so the handle of
      that category silently changes to the erased one.

    Sampling never touches global random state: callers pass a generator to
    every draw.  Mutating the container while iterating over
    :meth:`items` or :meth:`handles` is not allowed.
    """

    def __init__(
        self,
        items: Mapping[T, float] | Iterable[tuple[T, float]] = (),
        engine: str = "linked",
    ) -> None:
        pairs = list(items.items()) if isinstance(items, Mapping) else list(items)
        engine_cls = get_engine_class(engine)
        self.engine = engine
        self._labels: dict[Hashable, T] = {}
        weights = [w for _, w in pairs]
        if issubclass(engine_cls, LinkedIndex):
            self._index: BaseIndex = engine_cls()
            if pairs:
                self._index, handles = engine_cls.from_weights(weights)
                self._labels = {h: label for h, (label, _) in zip(handles, pairs)}
        elif issubclass(engine_cls, DenseIndex):
            self._index = engine_cls(weights)
            self._labels = {i: label for i, (label, _) in enumerate(pairs)}
        else:
            self._index = engine_cls()
            for label, weight in pairs:
                self.add(label, weight)

    @classmethod
    def from_weights(cls, weights: Iterable[float], engine: str = "linked") -> MutableCategorical[int]:
        """Categories ``0..n-1`` with the given weights."""
        return cls(enumerate(weights), engine=engine)  # type: ignore[return-value]

    @classmethod
    def from_function(
        cls, size: int, init: Callable[[int], float], engine: str = "dense"
    ) -> MutableCategorical[int]:
        """Categories ``0..size-1`` where category *i* has weight ``init(i)``."""
        return cls(((i, init(i)) for i in range(size)), engine=engine)  # type: ignore[return-value]

    # ── mutation ──────────────────────────────────────────────────────────

    def add(self, label: T, weight: float) -> Hashable:
        """Add a category and return its handle."""
        handle = self._index.add(check_weight(weight))
        self._labels[handle] = label
        return handle

    def erase(self, handle: Hashable) -> None:
        """Remove the category at *handle*, invalidating the handle.

        With the dense engine the category that held the last position
        takes over *handle*.  Erasing the same dense handle again therefore
        removes that relocated category; only a handle past the end is
        rejected with :class:`InvalidHandleError`.
        """
        self._check_handle(handle)
        self._index.erase(handle)
        if self._index.stable_handles:
            del self._labels[handle]
        else:
            # Swap-with-last: the old last position is now len(self).
            moved = self._labels.pop(len(self._index))
            if handle != len(self._index):
                self._labels[handle] = moved

    def set_weight(self, handle: Hashable, weight: float) -> None:
        """Change the weight of the category at *handle*."""
        self._index.set_weight(handle, weight)

    def clear(self) -> None:
        """Remove every category."""
        self._index.clear()
        self._labels.clear()

    def rebuild(self) -> None:
        """Recompute cached sums from scratch to discard accumulated rounding error."""
        self._index.rebuild()

    # ── queries ───────────────────────────────────────────────────────────

    def weight(self, handle: Hashable) -> float:
        return self._index.weight(handle)

    def label(self, handle: Hashable) -> T:
        self._check_handle(handle)
        return self._labels[handle]

    def probability(self, handle: Hashable) -> float:
        """Probability of drawing the category at *handle*."""
        weight = self._index.weight(handle)
        total = self.total
        if total <= 0.0:
            raise EmptyContainerError("probability is undefined when the total weight is zero")
        return weight / total

    def is_live(self, handle: object) -> bool:
        return self._index.is_live(handle)

    @property
    def total(self) -> float:
        """Sum of all weights."""
        return self._index.total

    @property
    def stable_handles(self) -> bool:
        """Whether handles survive the removal of other categories."""
        return self._index.stable_handles

    def handles(self) -> Iterator[Hashable]:
        """Yield every live handle in engine-defined order."""
        return self._index.handles()

    def items(self) -> Iterator[tuple[T, float]]:
        """Yield ``(label, weight)`` once per category, in engine-defined order."""
        for handle in self._index.handles():
            yield self._labels[handle], self._index.weight(handle)

    def __iter__(self) -> Iterator[Hashable]:
        return self.handles()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, handle: object) -> bool:
        return self.is_live(handle)

    # ── sampling ──────────────────────────────────────────────────────────

    def sample(self, rng: UniformSource) -> Hashable | None:
        """Draw a handle with probability proportional to its weight.

        Returns ``None`` when nothing can be drawn (no categories, or a total
        weight of zero).
        """
        if len(self._index) == 0 or self.total <= 0.0:
            return None
        return self._index.sample(rng.random())

    def draw(self, rng: UniformSource) -> T:
        """Draw a label, raising :class:`EmptyContainerError` if nothing can be drawn."""
        handle = self.sample(rng)
        if handle is None:
            raise EmptyContainerError("cannot draw from an empty categorical")
        return self._labels[handle]

    def sample_many(self, rng: np.random.Generator, n: int) -> list[Hashable]:
        """Draw *n* handles at once (vectorized)."""
        keys = self._index.sample_batch(rng.random(n))
        return [self._index.handle(k) for k in keys]

    def draw_counts(self, rng: np.random.Generator, n: int) -> Counter:
        """Draw *n* times and return how often each handle came up."""
        keys, counts = np.unique(self._index.sample_batch(rng.random(n)), return_counts=True)
        return Counter({self._index.handle(k): int(c) for k, c in zip(keys, counts)})

    # ── display ───────────────────────────────────────────────────────────

    def __str__(self) -> str:
        return "".join(f"{label} -> {weight}\n" for label, weight in self.items())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(engine={self.engine!r}, size={len(self)}, total={self.total!r})"

    # ── internals ─────────────────────────────────────────────────────────

    def _check_handle(self, handle: object) -> None:
        if not self._index.is_live(handle):
            raise InvalidHandleError(f"{handle!r} does not reference a live category")
