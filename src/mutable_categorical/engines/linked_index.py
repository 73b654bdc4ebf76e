"""Weight index over an explicit binary sum tree with stable handles."""

from __future__ import annotations

import heapq
import itertools
from typing import Iterable, Iterator, NamedTuple

import numpy as np

from mutable_categorical.engines import register
from mutable_categorical.engines.base import BaseIndex
from mutable_categorical.errors import EmptyContainerError, InvalidHandleError, check_weight

NIL = -1

_index_ids = itertools.count()


class Handle(NamedTuple):
    """Stable reference to a leaf of a :class:`LinkedIndex`.

    ``generation`` is bumped whenever ``slot`` is released, so a handle to an
    erased item never matches a later occupant of the same slot.  ``owner``
    identifies the index that issued the handle.
    """

    slot: int
    generation: int
    owner: int


@register("linked")
class LinkedIndex(BaseIndex):
    """Binary sum tree whose leaves hold weights.

    Nodes live in an arena of parallel numpy arrays addressed by slot number,
    with released slots kept on a free list.  Every internal node has exactly
    two children and caches ``sum[left] + sum[right]``; a leaf has
    ``left == NIL``.  Touched sums are always recomputed from the children
    rather than adjusted by a delta, so the cache never drifts.

    New leaves are spliced in by descending towards the lighter child, which
    keeps the tree roughly balanced by weight rather than by count.  Handles
    stay valid until their own item is erased.
    """

    stable_handles = True

    def __init__(self, capacity: int = 16) -> None:
        capacity = max(capacity, 1)
        self._sum = np.zeros(capacity, dtype=np.float64)
        self._parent = np.full(capacity, NIL, dtype=np.int64)
        self._left = np.full(capacity, NIL, dtype=np.int64)
        self._right = np.full(capacity, NIL, dtype=np.int64)
        self._generation = np.zeros(capacity, dtype=np.int64)
        self._live = np.zeros(capacity, dtype=np.bool_)
        self._free: list[int] = list(range(capacity - 1, -1, -1))
        self._root = NIL
        self._count = 0
        self._id = next(_index_ids)

    @classmethod
    def from_weights(cls, weights: Iterable[float]) -> tuple[LinkedIndex, list[Handle]]:
        """Build an optimal (Huffman) tree over *weights*.

        The two lightest subtrees are merged repeatedly, heavier subtree on
        the left, which minimises the expected number of descent steps per
        draw.  Returns the index and the leaf handles in input order.
        """
        values = [check_weight(w) for w in weights]
        index = cls(capacity=max(2 * len(values) - 1, 1))
        handles = []
        heap: list[tuple[float, int, int]] = []
        for order, value in enumerate(values):
            slot = index._alloc(value)
            handles.append(index._handle_of(slot))
            heap.append((value, order, slot))
        heapq.heapify(heap)
        order = len(values)
        while len(heap) > 1:
            light_sum, _, light = heapq.heappop(heap)
            heavy_sum, _, heavy = heapq.heappop(heap)
            parent = index._alloc(heavy_sum + light_sum)
            index._link(parent, heavy, light)
            heapq.heappush(heap, (float(index._sum[parent]), order, parent))
            order += 1
        if heap:
            index._root = heap[0][2]
        index._count = len(values)
        return index, handles

    # ── public API ────────────────────────────────────────────────────────

    def add(self, weight: float) -> Handle:
        """Insert a leaf with *weight* and return its handle."""
        weight = check_weight(weight)
        leaf = self._alloc(weight)
        if self._root == NIL:
            self._root = leaf
        else:
            node = self._root
            while self._left[node] != NIL and self._sum[node] > weight:
                left, right = self._left[node], self._right[node]
                node = int(left if self._sum[left] < self._sum[right] else right)
            self._splice(leaf, node)
        self._count += 1
        return self._handle_of(leaf)

    def erase(self, handle: Handle) -> Handle | None:
        """Remove the leaf at *handle*, replacing its parent by its sibling.

        Exactly two slots are released: the leaf and its former parent.
        Returns an unspecified remaining handle (a leaf of the sibling
        subtree), not a traversal successor, or ``None`` if the tree is now
        empty.
        """
        leaf = self._check_handle(handle)
        parent = int(self._parent[leaf])
        remaining = None
        if parent == NIL:
            self._root = NIL
        else:
            sibling = int(self._right[parent] if self._left[parent] == leaf else self._left[parent])
            grandparent = int(self._parent[parent])
            self._parent[sibling] = grandparent
            if grandparent == NIL:
                self._root = sibling
            else:
                self._replace_child(grandparent, parent, sibling)
                self._update_sums_from(grandparent)
            self._release(parent)
            remaining = self._handle_of(self._leftmost_leaf(sibling))
        self._release(leaf)
        self._count -= 1
        return remaining

    def set_weight(self, handle: Handle, weight: float) -> None:
        """Change the weight of the leaf at *handle*."""
        weight = check_weight(weight)
        leaf = self._check_handle(handle)
        self._sum[leaf] = weight
        self._update_sums_from(int(self._parent[leaf]))

    def weight(self, handle: Handle) -> float:
        return float(self._sum[self._check_handle(handle)])

    def sample(self, u: float) -> Handle:
        """Return the leaf selected by a uniform variate *u* in ``[0, 1)``."""
        if self._root == NIL or self.total <= 0.0:
            raise EmptyContainerError("cannot sample from an index with zero total weight")
        target = u * self._sum[self._root]
        node = self._root
        while self._left[node] != NIL:
            left = self._left[node]
            if self._sum[left] > target:
                node = left
            else:
                target -= self._sum[left]
                node = self._right[node]
        return self._handle_of(int(node))

    def sample_batch(self, u: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`sample`, descending one level per step for all draws."""
        if self._root == NIL or self.total <= 0.0:
            raise EmptyContainerError("cannot sample from an index with zero total weight")
        target = np.asarray(u, dtype=np.float64) * self._sum[self._root]
        node = np.full(target.shape, self._root, dtype=np.int64)
        left = self._left[node]
        internal = left != NIL
        while internal.any():
            safe_left = np.where(internal, left, node)
            left_sum = self._sum[safe_left]
            go_left = left_sum > target
            target = np.where(internal & ~go_left, target - left_sum, target)
            node = np.where(internal, np.where(go_left, safe_left, self._right[node]), node)
            left = self._left[node]
            internal = left != NIL
        return node

    def key(self, handle: Handle) -> int:
        return self._check_handle(handle)

    def handle(self, key: int) -> Handle:
        return self._handle_of(int(key))

    def handles(self) -> Iterator[Handle]:
        """Yield leaf handles left to right.  The order follows the tree shape."""
        if self._root == NIL:
            return
        stack = [self._root]
        while stack:
            node = stack.pop()
            if self._left[node] == NIL:
                yield self._handle_of(node)
            else:
                stack.append(int(self._right[node]))
                stack.append(int(self._left[node]))

    def is_live(self, handle: object) -> bool:
        if not isinstance(handle, Handle) or handle.owner != self._id:
            return False
        slot = handle.slot
        return bool(
            0 <= slot < len(self._live)
            and self._live[slot]
            and self._generation[slot] == handle.generation
            and self._left[slot] == NIL
        )

    def clear(self) -> None:
        live = np.flatnonzero(self._live)
        for slot in live[::-1]:
            self._release(int(slot))
        self._root = NIL
        self._count = 0

    @property
    def total(self) -> float:
        """Sum of all weights (root value)."""
        return float(self._sum[self._root]) if self._root != NIL else 0.0

    def __len__(self) -> int:
        return self._count

    # ── diagnostics ───────────────────────────────────────────────────────

    def expected_depth(self) -> float:
        """Mean number of descent steps per draw.

        Each internal node is passed through by a fraction ``sum / total``
        of draws, so this is the sum of internal sums over the total.
        """
        total = self.total
        if total <= 0.0:
            return 0.0
        internal = self._live & (self._left != NIL)
        return float(self._sum[internal].sum()) / total

    def depth(self) -> int:
        """Height of the tree (0 for a single leaf or an empty tree)."""
        if self._root == NIL:
            return 0
        height = 0
        stack = [(self._root, 0)]
        while stack:
            node, level = stack.pop()
            height = max(height, level)
            if self._left[node] != NIL:
                stack.append((int(self._left[node]), level + 1))
                stack.append((int(self._right[node]), level + 1))
        return height

    def check_invariants(self) -> None:
        """Raise ``AssertionError`` if any link or cached sum is inconsistent."""
        if self._root == NIL:
            assert self._count == 0, f"empty tree reports {self._count} leaves"
            return
        assert self._parent[self._root] == NIL, "root has a parent"
        leaves = 0
        stack = [self._root]
        while stack:
            node = stack.pop()
            assert self._live[node], f"slot {node} is reachable but released"
            left, right = int(self._left[node]), int(self._right[node])
            if left == NIL:
                assert right == NIL, f"leaf {node} has a right child"
                leaves += 1
                continue
            assert self._parent[left] == node and self._parent[right] == node, (
                f"children of {node} do not point back to it"
            )
            expected = self._sum[left] + self._sum[right]
            assert self._sum[node] == expected, (
                f"node {node} caches {self._sum[node]} but its children sum to {expected}"
            )
            stack.append(left)
            stack.append(right)
        assert leaves == self._count, f"found {leaves} leaves, expected {self._count}"

    # ── internals ─────────────────────────────────────────────────────────

    def _splice(self, leaf: int, node: int) -> None:
        # New internal node takes node's place: node on the left, leaf on the right.
        old_parent = int(self._parent[node])
        parent = self._alloc(0.0)
        self._parent[parent] = old_parent
        self._link(parent, node, leaf)
        if old_parent == NIL:
            self._root = parent
        else:
            self._replace_child(old_parent, node, parent)
            self._update_sums_from(old_parent)

    def _link(self, parent: int, left: int, right: int) -> None:
        self._left[parent] = left
        self._right[parent] = right
        self._parent[left] = parent
        self._parent[right] = parent
        self._sum[parent] = self._sum[left] + self._sum[right]

    def _replace_child(self, parent: int, old: int, new: int) -> None:
        if self._left[parent] == old:
            self._left[parent] = new
        else:
            self._right[parent] = new

    def _update_sums_from(self, node: int) -> None:
        while node != NIL:
            self._sum[node] = self._sum[self._left[node]] + self._sum[self._right[node]]
            node = int(self._parent[node])

    def _leftmost_leaf(self, node: int) -> int:
        while self._left[node] != NIL:
            node = int(self._left[node])
        return node

    def _alloc(self, value: float) -> int:
        if not self._free:
            self._grow()
        slot = self._free.pop()
        self._sum[slot] = value
        self._parent[slot] = NIL
        self._left[slot] = NIL
        self._right[slot] = NIL
        self._live[slot] = True
        return slot

    def _release(self, slot: int) -> None:
        self._live[slot] = False
        self._generation[slot] += 1
        self._sum[slot] = 0.0
        self._parent[slot] = NIL
        self._left[slot] = NIL
        self._right[slot] = NIL
        self._free.append(slot)

    def _grow(self) -> None:
        old = len(self._sum)
        new = 2 * old
        self._sum = np.concatenate([self._sum, np.zeros(new - old, dtype=np.float64)])
        self._parent = np.concatenate([self._parent, np.full(new - old, NIL, dtype=np.int64)])
        self._left = np.concatenate([self._left, np.full(new - old, NIL, dtype=np.int64)])
        self._right = np.concatenate([self._right, np.full(new - old, NIL, dtype=np.int64)])
        self._generation = np.concatenate([self._generation, np.zeros(new - old, dtype=np.int64)])
        self._live = np.concatenate([self._live, np.zeros(new - old, dtype=np.bool_)])
        self._free.extend(range(new - 1, old - 1, -1))

    def _handle_of(self, slot: int) -> Handle:
        return Handle(slot, int(self._generation[slot]), self._id)

    def _check_handle(self, handle: object) -> int:
        if not self.is_live(handle):
            raise InvalidHandleError(f"{handle!r} does not reference a live item")
        return int(handle.slot)  # type: ignore[union-attr]
