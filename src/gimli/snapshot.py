"""Shared state holding the latest value of every metric family."""

import threading
from typing import Any

from gimli.logs import get_logger
from gimli.models import CpuUsage, LoadAverage, MemoryInfo, NetInterface

log = get_logger("snapshot")

FAMILIES = ("cpu", "load", "memory", "interfaces")

DEFAULT_MAX_INTERFACES = 16


class _Slot:
    """One metric family: an immutable record swapped under its own lock."""

    __slots__ = ("_lock", "_value", "_version")

    def __init__(self, value: Any) -> None:
        self._lock = threading.Lock()
        self._value = value
        self._version = 0

    def get(self) -> Any:
        with self._lock:
            return self._value

    def set(self, value: Any) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    @property
    def version(self) -> int:
        with self._lock:
            return self._version


class Snapshot:
    """
    Latest known metrics, written by samplers and read by the router.

    Each family is published as an immutable record behind its own lock.
    The lock is only held for the reference swap, so a setter never waits on
    a slow reader and families never contend with each other. A reader can
    see cpu from one tick and load from another, but never half of a load
    triple or an interface list whose length disagrees with its entries.
    """

    def __init__(self, core_count: int, max_interfaces: int = DEFAULT_MAX_INTERFACES) -> None:
        if max_interfaces < 0:
            raise ValueError("max_interfaces must be non-negative")
        self._core_count = core_count
        self._max_interfaces = max_interfaces
        self._slots = {
            "cpu": _Slot(CpuUsage()),
            "load": _Slot(LoadAverage()),
            "memory": _Slot(MemoryInfo()),
            "interfaces": _Slot(()),
        }

    @property
    def core_count(self) -> int:
        """Number of configured cores, fixed at startup."""
        return self._core_count

    @property
    def max_interfaces(self) -> int:
        return self._max_interfaces

    def set_cpu(self, usage: CpuUsage) -> None:
        self._slots["cpu"].set(usage)

    def get_cpu(self) -> CpuUsage:
        return self._slots["cpu"].get()

    def set_load(self, load: LoadAverage) -> None:
        self._slots["load"].set(load)

    def get_load(self) -> LoadAverage:
        return self._slots["load"].get()

    def set_memory(self, memory: MemoryInfo) -> None:
        self._slots["memory"].set(memory)

    def get_memory(self) -> MemoryInfo:
        return self._slots["memory"].get()

    def set_interfaces(self, interfaces: list[NetInterface]) -> None:
        """
        Replace the interface list.

        Lists longer than max_interfaces are truncated to their first
        max_interfaces entries.
        """
        published = tuple(interfaces[: self._max_interfaces])
        if len(published) < len(interfaces):
            log.warning(
                "interfaces_truncated",
                found=len(interfaces),
                kept=len(published),
            )
        self._slots["interfaces"].set(published)

    def get_interfaces(self) -> tuple[NetInterface, ...]:
        return self._slots["interfaces"].get()

    def versions(self) -> dict[str, int]:
        """Publish counter per family."""
        return {family: self._slots[family].version for family in FAMILIES}

    def as_dict(self) -> dict[str, Any]:
        """Current record of every family. Not consistent across families."""
        return {
            "cpu": self.get_cpu(),
            "load": self.get_load(),
            "memory": self.get_memory(),
            "interfaces": self.get_interfaces(),
            "cores": self._core_count,
        }
