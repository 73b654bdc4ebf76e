"""Integer-addressed weight index over an implicit (Fenwick-style) sum tree."""

from __future__ import annotations

from typing import Callable, Iterable, Iterator

import numpy as np

from mutable_categorical.engines import register
from mutable_categorical.engines.base import BaseIndex
from mutable_categorical.errors import EmptyContainerError, InvalidHandleError, check_weight

# Largest size whose positions still fit the int64 arrays used for batch sampling.
MAX_SIZE = 1 << 62


def highest_one_bit(i: int) -> int:
    """Return the value of the most significant set bit of *i* (0 for 0)."""
    return 1 << (i.bit_length() - 1) if i > 0 else 0


@register("dense")
class DenseIndex(BaseIndex):
    """A weight for each position ``0..size-1`` stored as a binary sum tree.

    Only the sums of right-hand subtrees are stored, which maps the tree onto
    a flat array: the path from the root to a node, read as bits from the
    most significant end, is that node's index.  Position *i* stores its own
    weight plus the stored sums of its right-descendants ``i + 2**k`` for
    every ``2**k`` below the lowest set bit of *i* (every ``k`` when
    ``i == 0``), skipping descendants beyond the end of the array.  Position
    0 therefore holds the total.

    Sizes need not be powers of two.  ``get`` is O(1), ``sample`` is
    O(log n), ``set``/``append``/``pop``/``erase`` are O(log² n) (amortized for
    growth), construction and :meth:`rebuild` are O(n).

    Handles are plain positions and are *not* stable: :meth:`erase` moves the
    last weight into the freed position, so the handle of that item changes
    from ``len(self) - 1`` to the erased position.

    Raw weights are kept alongside the tree.  An update recomputes every
    stored sum on the path to the root from the raw weight and the children
    (O(log² n)) instead of adding a delta, so the tree is always bit-for-bit
    the one :meth:`rebuild` would produce.  Nothing drifts: all-zero weights
    give a total of exactly ``0.0``, the total is never negative, and it
    stays within ``1e-8`` of the exact sum of the weights for a thousand
    weights in ``[0, 1)``.
    """

    stable_handles = False

    def __init__(self, weights: Iterable[float] = (), capacity: int = 16) -> None:
        values = [check_weight(w) for w in weights]
        self._check_size(len(values))
        self._size = len(values)
        capacity = max(capacity, self._size, 1)
        self._tree = np.zeros(capacity, dtype=np.float64)
        self._weights = np.zeros(capacity, dtype=np.float64)
        self._weights[: self._size] = values
        self.rebuild()

    @classmethod
    def from_function(cls, size: int, init: Callable[[int], float]) -> DenseIndex:
        """Build an index of *size* positions with weight ``init(i)`` at *i*."""
        return cls((init(i) for i in range(size)), capacity=size)

    # ── public API ────────────────────────────────────────────────────────

    def get(self, index: int) -> float:
        """Return the weight at *index*."""
        self._check_position(index)
        return float(self._weights[index])

    def set(self, index: int, weight: float) -> None:
        """Set the weight at *index*."""
        weight = check_weight(weight)
        self._check_position(index)
        self._update(int(index), weight)

    def append(self, weight: float) -> int:
        """Add a weight at position ``len(self)`` and return that position."""
        weight = check_weight(weight)
        self._check_size(self._size + 1)
        self._reserve(self._size + 1)
        index = self._size
        self._size += 1
        self._update(index, weight)
        return index

    def pop(self) -> float:
        """Remove the last position and return its weight."""
        if self._size == 0:
            raise EmptyContainerError("pop from an empty index")
        index = self._size - 1
        weight = float(self._weights[index])
        # Zeroing the last position leaves every ancestor exactly as a
        # fresh build without it would be, since x + 0.0 == x.
        self._update(index, 0.0)
        self._size -= 1
        return weight

    def sample(self, u: float) -> int:
        """Return the position selected by a uniform variate *u* in ``[0, 1)``.

        Position *i* is returned with probability ``weight(i) / total``.
        """
        if self._size == 0 or self.total <= 0.0:
            raise EmptyContainerError("cannot sample from an index with zero total weight")
        tree = self._tree
        target = u * tree[0]
        index = 0
        offset = highest_one_bit(self._size - 1)
        while offset:
            child = index + offset
            if child < self._size:
                value = tree[child]
                if value > target:
                    index = child
                else:
                    target -= value
            offset >>= 1
        return index

    def sample_batch(self, u: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`sample` over an array of uniform variates."""
        if self._size == 0 or self.total <= 0.0:
            raise EmptyContainerError("cannot sample from an index with zero total weight")
        tree = self._tree
        last = self._size - 1
        target = np.asarray(u, dtype=np.float64) * tree[0]
        index = np.zeros(target.shape, dtype=np.int64)
        offset = highest_one_bit(last)
        while offset:
            child = index + offset
            # Out-of-range descendants contribute zero and are never entered.
            values = np.where(child <= last, tree[np.minimum(child, last)], 0.0)
            descend = values > target
            target = np.where(descend, target, target - values)
            index = np.where(descend, child, index)
            offset >>= 1
        return index

    def probability(self, index: int) -> float:
        """Normalised probability of *index*."""
        return self.get(index) / self.total

    def weights(self) -> np.ndarray:
        """Return a copy of all weights in position order."""
        return self._weights[: self._size].copy()

    def rebuild(self) -> None:
        """Recompute every stored sum from the raw weights in O(n)."""
        tree = self._tree
        for i in range(self._size - 1, -1, -1):
            tree[i] = self._weights[i] + self._descendant_sum(i)
        tree[self._size :] = 0.0

    @property
    def total(self) -> float:
        """Sum of all weights (root value)."""
        return float(self._tree[0]) if self._size else 0.0

    # ── engine contract ───────────────────────────────────────────────────

    def add(self, weight: float) -> int:
        return self.append(weight)

    def erase(self, handle: int) -> int | None:
        """Remove position *handle* by moving the last weight into it.

        Returns *handle* if another item was relocated there (its old handle,
        ``len(self)`` after the call, is now invalid), else ``None``.

        Positions are reused, so a second erase of *handle* is only rejected
        when *handle* is out of range.  Otherwise it removes the relocated
        item.
        """
        self._check_position(handle)
        index = int(handle)
        last = self._size - 1
        if index != last:
            self._update(index, float(self._weights[last]))
        self.pop()
        return index if index != last else None

    def set_weight(self, handle: int, weight: float) -> None:
        self.set(handle, weight)

    def weight(self, handle: int) -> float:
        return self.get(handle)

    def key(self, handle: int) -> int:
        self._check_position(handle)
        return int(handle)

    def handle(self, key: int) -> int:
        return int(key)

    def handles(self) -> Iterator[int]:
        return iter(range(self._size))

    def is_live(self, handle: object) -> bool:
        return bool(
            isinstance(handle, (int, np.integer))
            and not isinstance(handle, bool)
            and 0 <= handle < self._size
        )

    def clear(self) -> None:
        self._tree[:] = 0.0
        self._weights[:] = 0.0
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, index: int) -> float:
        return self.get(index)

    def __setitem__(self, index: int, weight: float) -> None:
        self.set(index, weight)

    # ── internals ─────────────────────────────────────────────────────────

    def _descendant_sum(self, index: int) -> float:
        total = 0.0
        offset = 1
        while (offset & index) == 0 and offset < self._size:
            child = index + offset
            if child < self._size:
                total += self._tree[child]
            offset <<= 1
        return total

    def _update(self, index: int, weight: float) -> None:
        self._weights[index] = weight
        node = index
        # Clearing the lowest set bit moves to the parent; children are
        # always recomputed before their ancestors.
        while True:
            self._tree[node] = self._weights[node] + self._descendant_sum(node)
            if node == 0:
                break
            node &= node - 1

    def _reserve(self, capacity: int) -> None:
        if capacity <= len(self._tree):
            return
        capacity = max(capacity, 2 * len(self._tree))
        tree = np.zeros(capacity, dtype=np.float64)
        weights = np.zeros(capacity, dtype=np.float64)
        tree[: self._size] = self._tree[: self._size]
        weights[: self._size] = self._weights[: self._size]
        self._tree = tree
        self._weights = weights

    def _check_position(self, index: object) -> None:
        if not self.is_live(index):
            raise InvalidHandleError(
                f"Position {index!r} is not a live position in an index of size {self._size}"
            )

    @staticmethod
    def _check_size(size: int) -> None:
        if size > MAX_SIZE:
            raise OverflowError(f"Dense index size {size} exceeds the maximum of {MAX_SIZE}")
