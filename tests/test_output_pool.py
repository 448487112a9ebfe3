"""Tests for services/output_pool.py — retention cap and eviction policies."""

import pytest

from services.output_pool import BoundedResourcePool, EvictionPolicy, FifoEviction, OutputResource
from services.report_assembler import ReportHandle


class ExplodingHandle(ReportHandle):
    def close(self) -> None:
        raise OSError("already gone")


class NewestFirstEviction(EvictionPolicy):
    def select(self, retained, capacity):
        overflow = len(retained) - capacity
        return list(retained[-overflow:]) if overflow > 0 else []


def _handles(n):
    return [ReportHandle(name=f"r{i}") for i in range(n)]


def test_handle_satisfies_protocol():
    assert isinstance(ReportHandle(name="x"), OutputResource)


def test_under_capacity_keeps_everything():
    pool = BoundedResourcePool(3)
    for h in _handles(3):
        assert pool.add(h) == []
    assert len(pool) == 3


def test_fifo_evicts_oldest():
    pool = BoundedResourcePool(2)
    handles = _handles(4)
    evicted = []
    for h in handles:
        evicted.extend(pool.add(h))
    assert [h.name for h in evicted] == ["r0", "r1"]
    assert all(h.closed for h in evicted)
    assert [h.name for h in pool.retained] == ["r2", "r3"]
    assert not any(h.closed for h in pool.retained)
    assert pool.evicted_count == 2


def test_closing_twice_is_a_noop():
    handle = ReportHandle(name="r", document=object())
    handle.close()
    handle.close()
    assert handle.closed
    assert handle.document is None


def test_evicting_an_already_closed_resource():
    pool = BoundedResourcePool(1)
    first = ReportHandle(name="first")
    first.close()
    pool.add(first)
    assert pool.add(ReportHandle(name="second")) == [first]


def test_close_failure_does_not_break_the_pool():
    pool = BoundedResourcePool(1)
    pool.add(ExplodingHandle(name="boom"))
    evicted = pool.add(ReportHandle(name="ok"))
    assert [h.name for h in evicted] == ["boom"]
    assert [h.name for h in pool.retained] == ["ok"]


def test_policy_is_swappable():
    pool = BoundedResourcePool(2, policy=NewestFirstEviction())
    for h in _handles(3):
        pool.add(h)
    assert [h.name for h in pool.retained] == ["r0", "r1"]


def test_fifo_select_without_overflow():
    assert FifoEviction().select(_handles(2), 5) == []


def test_clear_leaves_resources_open_by_default():
    pool = BoundedResourcePool(5)
    handles = _handles(2)
    for h in handles:
        pool.add(h)
    pool.clear()
    assert len(pool) == 0
    assert not any(h.closed for h in handles)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        BoundedResourcePool(0)
