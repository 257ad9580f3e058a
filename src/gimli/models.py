"""Data models for gimli."""

from dataclasses import dataclass, fields


@dataclass(slots=True, frozen=True)
class CpuTicks:
    """Cumulative CPU time counters as read from the kernel."""

    user: float
    nice: float
    system: float
    idle: float
    iowait: float

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (self.user, self.nice, self.system, self.idle, self.iowait)


@dataclass(slots=True, frozen=True)
class CpuUsage:
    """Immutable CPU utilization breakdown over one measurement window."""

    user: float = 0.0  # 0.0 - 100.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0

    @property
    def total(self) -> float:
        return self.user + self.nice + self.system + self.idle + self.iowait


@dataclass(slots=True, frozen=True)
class LoadAverage:
    """1, 5 and 15 minute load averages."""

    one: float = 0.0
    five: float = 0.0
    fifteen: float = 0.0

    def as_list(self) -> list[float]:
        return [self.one, self.five, self.fifteen]


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """
    Memory counters, process count and uptime.

    RAM and swap counters are expressed in KiB, mem_unit is the scale the
    kernel reported them in before conversion.
    """

    total_ram: int = 0
    free_ram: int = 0
    shared_ram: int = 0
    buffer_ram: int = 0
    total_swap: int = 0
    free_swap: int = 0
    total_high: int = 0
    free_high: int = 0
    mem_unit: int = 1
    procs: int = 0
    uptime: int = 0  # Seconds

    def __post_init__(self) -> None:
        for field in fields(self):
            if getattr(self, field.name) < 0:
                raise ValueError(f"{field.name} must be non-negative")


@dataclass(slots=True, frozen=True)
class NetInterface:
    """An IPv4-bearing network interface."""

    name: str
    ipv4: str
