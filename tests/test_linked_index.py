"""Tests for the linked (arena sum tree) index."""

from __future__ import annotations

import math

import numpy as np
import pytest

from mutable_categorical.engines.linked_index import Handle, LinkedIndex
from mutable_categorical.errors import EmptyContainerError, InvalidHandleError, InvalidWeightError
from mutable_categorical.stats.huffman import huffman_length


def _grid(n: int) -> np.ndarray:
    return (np.arange(n) + 0.5) / n


def _churn(index: LinkedIndex, rng: np.random.Generator, n_ops: int) -> dict[Handle, float]:
    """Apply random add / erase / set_weight calls, returning the live weights."""
    live: dict[Handle, float] = {}
    for _ in range(n_ops):
        op = rng.integers(3) if live else 0
        if op == 0:
            weight = float(rng.random())
            live[index.add(weight)] = weight
        elif op == 1:
            handle = list(live)[int(rng.integers(len(live)))]
            index.erase(handle)
            del live[handle]
        else:
            handle = list(live)[int(rng.integers(len(live)))]
            weight = float(rng.random())
            index.set_weight(handle, weight)
            live[handle] = weight
        index.check_invariants()
    return live


def test_empty_index() -> None:
    index = LinkedIndex()
    assert len(index) == 0
    assert index.total == 0.0
    assert list(index.handles()) == []
    index.check_invariants()


def test_add_returns_handle_with_exact_weight() -> None:
    index = LinkedIndex()
    handle = index.add(0.3)
    assert isinstance(handle, Handle)
    assert index.weight(handle) == 0.3
    assert index.total == 0.3


def test_invariants_hold_under_churn(rng: np.random.Generator) -> None:
    index = LinkedIndex(capacity=2)
    live = _churn(index, rng, 500)
    assert len(index) == len(live)
    assert abs(index.total - math.fsum(live.values())) < 1e-8
    for handle, weight in live.items():
        assert index.weight(handle) == weight


def test_handles_are_stable_across_other_removals() -> None:
    index = LinkedIndex()
    a = index.add(1.0)
    b = index.add(2.0)
    c = index.add(3.0)
    index.erase(b)
    assert index.weight(a) == 1.0
    assert index.weight(c) == 3.0
    assert set(index.handles()) == {a, c}


def test_erase_twice_is_rejected() -> None:
    index = LinkedIndex()
    a = index.add(1.0)
    index.add(2.0)
    index.erase(a)
    with pytest.raises(InvalidHandleError):
        index.erase(a)
    assert len(index) == 1
    index.check_invariants()


def test_stale_handle_after_slot_reuse() -> None:
    index = LinkedIndex()
    a = index.add(1.0)
    index.erase(a)
    b = index.add(2.0)
    assert b.slot == a.slot
    assert b.generation != a.generation
    assert not index.is_live(a)
    with pytest.raises(InvalidHandleError):
        index.weight(a)


def test_foreign_handle_is_rejected() -> None:
    first = LinkedIndex()
    second = LinkedIndex()
    handle = first.add(1.0)
    second.add(1.0)
    assert not second.is_live(handle)
    with pytest.raises(InvalidHandleError):
        second.set_weight(handle, 2.0)


def test_internal_node_is_not_a_handle() -> None:
    index = LinkedIndex()
    index.add(1.0)
    index.add(2.0)
    root = index._root
    forged = Handle(root, int(index._generation[root]), index._id)
    assert not index.is_live(forged)


def test_erase_releases_leaf_and_parent() -> None:
    index = LinkedIndex(capacity=8)
    handles = [index.add(w) for w in (1.0, 2.0, 3.0)]
    free_before = len(index._free)
    index.erase(handles[1])
    assert len(index._free) == free_before + 2


def test_erase_return_value() -> None:
    index = LinkedIndex()
    a = index.add(1.0)
    b = index.add(2.0)
    remaining = index.erase(a)
    assert remaining == b
    assert index.erase(b) is None
    assert len(index) == 0
    assert index.total == 0.0


def test_heavy_item_is_inserted_near_the_root() -> None:
    index = LinkedIndex()
    index.add(1.0)
    index.add(1.0)
    index.add(10.0)
    # Leaves at depths 2, 2 and 1: (1 * 2 + 1 * 2 + 10 * 1) / 12
    assert abs(index.expected_depth() - 14.0 / 12.0) < 1e-12
    assert index.depth() == 2


def test_insertion_descends_into_lighter_child() -> None:
    index = LinkedIndex()
    heavy = index.add(5.0)
    light = index.add(1.0)
    index.add(0.5)
    # The new leaf joins the lighter leaf, leaving the heavy one at depth 1.
    root = index._root
    assert index._left[root] == heavy.slot
    assert index._parent[light.slot] == index._right[root]


def test_set_weight() -> None:
    index = LinkedIndex()
    a = index.add(1.0)
    b = index.add(2.0)
    index.set_weight(a, 4.0)
    assert index.weight(a) == 4.0
    assert index.weight(b) == 2.0
    assert index.total == 6.0
    index.check_invariants()


@pytest.mark.parametrize("bad", [-0.5, math.nan, -math.inf, math.inf])
def test_invalid_weight_rejected(bad: float) -> None:
    index = LinkedIndex()
    handle = index.add(1.0)
    with pytest.raises(InvalidWeightError):
        index.add(bad)
    with pytest.raises(InvalidWeightError):
        index.set_weight(handle, bad)
    assert len(index) == 1
    assert index.total == 1.0


def test_singleton_always_sampled() -> None:
    index = LinkedIndex()
    handle = index.add(0.1)
    for u in _grid(50):
        assert index.sample(u) == handle


def test_zero_weights_never_sampled() -> None:
    index = LinkedIndex()
    handles = [index.add(w) for w in (0.0, 0.0, 1.0, 0.0, 0.0, 0.0)]
    for u in _grid(200):
        assert index.sample(u) == handles[2]


def test_sample_empty_or_zero_total_raises() -> None:
    with pytest.raises(EmptyContainerError):
        LinkedIndex().sample(0.5)
    index = LinkedIndex()
    index.add(0.0)
    with pytest.raises(EmptyContainerError):
        index.sample_batch(np.array([0.5]))


def test_grid_draws_are_proportional(rng: np.random.Generator) -> None:
    index = LinkedIndex()
    live = _churn(index, rng, 300)
    n = 20_000
    keys, counts = np.unique(index.sample_batch(_grid(n)), return_counts=True)
    drawn = {index.handle(k): c for k, c in zip(keys, counts)}
    total = math.fsum(live.values())
    for handle, weight in live.items():
        assert abs(drawn.get(handle, 0) - n * weight / total) <= 2


def test_sample_batch_matches_sample(rng: np.random.Generator) -> None:
    index = LinkedIndex()
    _churn(index, rng, 100)
    u = rng.random(300)
    batch = [index.handle(k) for k in index.sample_batch(u)]
    assert batch == [index.sample(x) for x in u]


def test_from_weights_is_huffman_optimal(rng: np.random.Generator) -> None:
    weights = list(rng.random(200))
    index, handles = LinkedIndex.from_weights(weights)
    index.check_invariants()
    assert [index.weight(h) for h in handles] == weights
    assert abs(index.expected_depth() - huffman_length(weights)) < 1e-9


def test_from_weights_empty_and_single() -> None:
    index, handles = LinkedIndex.from_weights([])
    assert len(index) == 0 and handles == []
    index, handles = LinkedIndex.from_weights([2.5])
    assert index.total == 2.5
    assert index.sample(0.7) == handles[0]


def test_clear_invalidates_handles() -> None:
    index = LinkedIndex()
    handle = index.add(1.0)
    index.add(2.0)
    index.clear()
    assert len(index) == 0
    assert not index.is_live(handle)
    index.check_invariants()
    index.add(3.0)
    assert index.total == 3.0
