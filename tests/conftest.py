"""Shared fixtures for gimli tests."""

import threading

import pytest

from gimli.models import CpuTicks, CpuUsage, LoadAverage, MemoryInfo, NetInterface
from gimli.snapshot import Snapshot
from gimli.sources import SourceUnavailable


class FakeSource:
    """Deterministic MetricSource with switchable failures."""

    def __init__(self) -> None:
        self.cores = 4
        self.ticks = [
            CpuTicks(user=100, nice=0, system=50, idle=800, iowait=50),
            CpuTicks(user=130, nice=0, system=60, idle=850, iowait=60),
        ]
        self.load = LoadAverage(0.12, 0.34, 0.56)
        self.memory = MemoryInfo(total_ram=8_000_000, free_ram=2_000_000, procs=123, uptime=90125)
        self.interfaces = [NetInterface("lo", "127.0.0.1"), NetInterface("eth0", "10.0.0.2")]
        self.failing: set[str] = set()
        self.calls: dict[str, int] = {"cpu": 0, "load": 0, "memory": 0, "net": 0}
        self._lock = threading.Lock()

    def _enter(self, family: str) -> None:
        with self._lock:
            self.calls[family] += 1
        if family in self.failing:
            raise SourceUnavailable(family, "fixture failure")

    def core_count(self) -> int:
        return self.cores

    def read_cpu_ticks(self) -> CpuTicks:
        self._enter("cpu")
        with self._lock:
            # Alternate between the two configured readings
            return self.ticks[(self.calls["cpu"] - 1) % len(self.ticks)]

    def read_load_average(self) -> LoadAverage:
        self._enter("load")
        return self.load

    def read_memory_info(self) -> MemoryInfo:
        self._enter("memory")
        return self.memory

    def list_ipv4_interfaces(self) -> list[NetInterface]:
        self._enter("net")
        return list(self.interfaces)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def snapshot() -> Snapshot:
    return Snapshot(core_count=4)


@pytest.fixture
def loaded_snapshot(snapshot: Snapshot) -> Snapshot:
    """Snapshot holding known fixture values in every family."""
    snapshot.set_cpu(CpuUsage(user=12.34, nice=1.0, system=5.55, idle=76.11, iowait=5.0))
    snapshot.set_load(LoadAverage(0.12, 0.34, 0.56))
    snapshot.set_memory(MemoryInfo(procs=321, uptime=90125))
    snapshot.set_interfaces([NetInterface("lo", "127.0.0.1"), NetInterface("eth0", "10.0.0.2")])
    return snapshot
