"""Metric sources: the boundary between gimli and the operating system."""

import socket
import time
from typing import Protocol, runtime_checkable

import psutil

from gimli.models import CpuTicks, LoadAverage, MemoryInfo, NetInterface


class SourceUnavailable(Exception):
    """A metric source could not produce a reading right now."""

    def __init__(self, family: str, reason: str) -> None:
        super().__init__(f"{family}: {reason}")
        self.family = family
        self.reason = reason


@runtime_checkable
class MetricSource(Protocol):
    """Anything able to read raw metrics for the samplers."""

    def core_count(self) -> int: ...

    def read_cpu_ticks(self) -> CpuTicks: ...

    def read_load_average(self) -> LoadAverage: ...

    def read_memory_info(self) -> MemoryInfo: ...

    def list_ipv4_interfaces(self) -> list[NetInterface]: ...


class PsutilSource:
    """
    MetricSource backed by psutil.

    On Linux psutil reads /proc/stat, /proc/loadavg and /proc/meminfo and
    enumerates interfaces through getifaddrs(), so this mirrors the raw
    kernel interfaces while staying portable. Every psutil or OS error is
    re-raised as SourceUnavailable so samplers can retry on the next cycle.
    """

    def core_count(self) -> int:
        return psutil.cpu_count(logical=True) or 0

    def read_cpu_ticks(self) -> CpuTicks:
        try:
            times = psutil.cpu_times()
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailable("cpu", str(exc)) from exc
        # nice and iowait are missing on some platforms
        return CpuTicks(
            user=times.user,
            nice=getattr(times, "nice", 0.0),
            system=times.system,
            idle=times.idle,
            iowait=getattr(times, "iowait", 0.0),
        )

    def read_load_average(self) -> LoadAverage:
        try:
            one, five, fifteen = psutil.getloadavg()
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailable("load", str(exc)) from exc
        return LoadAverage(one=one, five=five, fifteen=fifteen)

    def read_memory_info(self) -> MemoryInfo:
        try:
            mem = psutil.virtual_memory()
            swap = psutil.swap_memory()
            procs = len(psutil.pids())
            uptime = int(time.time() - psutil.boot_time())
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailable("memory", str(exc)) from exc

        # psutil reports bytes; high memory is not exposed (always zero on
        # 64-bit kernels anyway)
        return MemoryInfo(
            total_ram=mem.total // 1024,
            free_ram=mem.free // 1024,
            shared_ram=getattr(mem, "shared", 0) // 1024,
            buffer_ram=getattr(mem, "buffers", 0) // 1024,
            total_swap=swap.total // 1024,
            free_swap=swap.free // 1024,
            total_high=0,
            free_high=0,
            mem_unit=1,
            procs=procs,
            uptime=max(uptime, 0),
        )

    def list_ipv4_interfaces(self) -> list[NetInterface]:
        try:
            addrs = psutil.net_if_addrs()
        except (psutil.Error, OSError) as exc:
            raise SourceUnavailable("net", str(exc)) from exc

        interfaces: list[NetInterface] = []
        for name, entries in addrs.items():
            for entry in entries:
                if entry.family == socket.AF_INET:
                    interfaces.append(NetInterface(name=name, ipv4=entry.address))
        return interfaces
