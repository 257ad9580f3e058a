"""Tests for gimli data models."""

import pytest

from gimli.models import CpuTicks, CpuUsage, LoadAverage, MemoryInfo, NetInterface


def test_cpu_usage_defaults_to_zero():
    """Test CpuUsage starts with every bucket at 0.0."""
    usage = CpuUsage()

    assert usage.user == 0.0
    assert usage.nice == 0.0
    assert usage.system == 0.0
    assert usage.idle == 0.0
    assert usage.iowait == 0.0
    assert usage.total == 0.0


def test_cpu_ticks_as_tuple_order():
    """Test CpuTicks exposes buckets in kernel column order."""
    ticks = CpuTicks(user=1, nice=2, system=3, idle=4, iowait=5)
    assert ticks.as_tuple() == (1, 2, 3, 4, 5)


def test_load_average_as_list():
    """Test LoadAverage renders as a 1/5/15 list."""
    assert LoadAverage(0.12, 0.34, 0.56).as_list() == [0.12, 0.34, 0.56]


def test_memory_info_rejects_negative_counters():
    """Test MemoryInfo refuses negative values."""
    with pytest.raises(ValueError, match="procs"):
        MemoryInfo(procs=-1)


def test_models_are_frozen():
    """Test that every model is immutable (frozen)."""
    load = LoadAverage(1.0, 2.0, 3.0)

    # Attempting to modify should raise an error
    try:
        load.one = 9.0
        raise AssertionError("Should have raised FrozenInstanceError")
    except AttributeError:
        pass  # Expected behavior for frozen dataclass


def test_models_use_slots():
    """Test that models use __slots__ for memory efficiency."""
    for instance in (
        CpuTicks(0, 0, 0, 0, 0),
        CpuUsage(),
        LoadAverage(),
        MemoryInfo(),
        NetInterface("lo", "127.0.0.1"),
    ):
        # Slots-based dataclasses don't have __dict__
        assert not hasattr(instance, "__dict__")
