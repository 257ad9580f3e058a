"""Sampling engine for gimli: one background thread per metric family."""

import threading
from enum import Enum
from typing import Any

from gimli.logs import get_logger
from gimli.models import CpuTicks, CpuUsage
from gimli.snapshot import Snapshot
from gimli.sources import MetricSource, SourceUnavailable

log = get_logger("monitor")

CPU_WINDOW = 3.0
DEFAULT_INTERVAL = 1.0


class SamplerState(Enum):
    """Where a sampler is in its read/publish cycle."""

    IDLE = "idle"
    SAMPLING = "sampling"
    PUBLISHING = "publishing"


def compute_cpu_usage(old: CpuTicks, new: CpuTicks) -> CpuUsage:
    """
    Turn two tick readings into utilization percentages.

    Each bucket delta is taken as an absolute difference so a counter reset
    never yields a negative share. When no ticks elapsed at all every
    bucket is reported as 0.0.
    """
    deltas = [abs(b - a) for a, b in zip(old.as_tuple(), new.as_tuple())]
    total = sum(deltas)
    if total <= 0:
        return CpuUsage()
    user, nice, system, idle, iowait = (100.0 * d / total for d in deltas)
    return CpuUsage(user=user, nice=nice, system=system, idle=idle, iowait=iowait)


class Sampler:
    """
    Polls one metric family from a MetricSource and publishes it.

    Runs in a separate daemon thread. Read failures are logged and counted,
    the snapshot keeps its previous value and the next cycle retries.
    """

    family = ""

    def __init__(
        self,
        source: MetricSource,
        snapshot: Snapshot,
        interval: float = DEFAULT_INTERVAL,
        retry_interval: float | None = None,
    ) -> None:
        """
        Initialize the sampler.

        Args:
            source: Where raw readings come from.
            snapshot: Shared state to publish into.
            interval: Pause after each cycle (seconds).
            retry_interval: Pause after a failed cycle. Defaults to interval.
        """
        self._source = source
        self._snapshot = snapshot
        self._interval = interval
        self._retry_interval = interval if retry_interval is None else retry_interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = SamplerState.IDLE
        self._cycles = 0
        self._failures = 0

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def cycles(self) -> int:
        """Number of successful publishes."""
        return self._cycles

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def is_running(self) -> bool:
        """Check if the sampler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name=f"Sampler-{self.family}",
        )
        self._thread.start()

    def request_stop(self) -> None:
        """Signal the thread to stop without waiting for it."""
        self._stop_event.set()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sampling thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_once(self) -> bool:
        """Run a single sample/publish cycle. Returns True if it published."""
        self._state = SamplerState.SAMPLING
        try:
            value = self.sample()
            if value is None:
                return False
            self._state = SamplerState.PUBLISHING
            self.publish(value)
            self._cycles += 1
            return True
        except SourceUnavailable as exc:
            self._failures += 1
            log.warning("sample_failed", family=self.family, error=exc.reason)
            return False
        except Exception:
            self._failures += 1
            log.exception("sample_crashed", family=self.family)
            return False
        finally:
            self._state = SamplerState.IDLE

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            published = self.run_once()
            self._stop_event.wait(timeout=self._interval if published else self._retry_interval)

    def sample(self) -> Any:
        """Read the family from the source. None means nothing to publish."""
        raise NotImplementedError

    def publish(self, value: Any) -> None:
        raise NotImplementedError


class CpuSampler(Sampler):
    """
    Measures CPU utilization over a fixed window.

    The window itself sets the cadence: there is no extra sleep between
    measurements.
    """

    family = "cpu"

    def __init__(self, source: MetricSource, snapshot: Snapshot, window: float = CPU_WINDOW) -> None:
        super().__init__(source, snapshot, interval=0.0, retry_interval=window)
        self._window = window

    @property
    def window(self) -> float:
        return self._window

    def sample(self) -> CpuUsage | None:
        old = self._source.read_cpu_ticks()
        if self._stop_event.wait(timeout=self._window):
            return None
        new = self._source.read_cpu_ticks()
        return compute_cpu_usage(old, new)

    def publish(self, value: CpuUsage) -> None:
        self._snapshot.set_cpu(value)


class LoadSampler(Sampler):
    family = "load"

    def sample(self):
        return self._source.read_load_average()

    def publish(self, value) -> None:
        self._snapshot.set_load(value)


class MemorySampler(Sampler):
    family = "memory"

    def sample(self):
        return self._source.read_memory_info()

    def publish(self, value) -> None:
        self._snapshot.set_memory(value)


class InterfaceSampler(Sampler):
    family = "net"

    def sample(self):
        return self._source.list_ipv4_interfaces()

    def publish(self, value) -> None:
        self._snapshot.set_interfaces(value)


class SamplerGroup:
    """The four samplers feeding one snapshot, started and stopped together."""

    def __init__(
        self,
        source: MetricSource,
        snapshot: Snapshot,
        cpu_window: float = CPU_WINDOW,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.samplers: list[Sampler] = [
            CpuSampler(source, snapshot, window=cpu_window),
            LoadSampler(source, snapshot, interval=interval),
            MemorySampler(source, snapshot, interval=interval),
            InterfaceSampler(source, snapshot, interval=interval),
        ]

    @property
    def is_running(self) -> bool:
        return all(sampler.is_running for sampler in self.samplers)

    def start(self) -> None:
        for sampler in self.samplers:
            sampler.start()
        log.info("samplers_started", families=[s.family for s in self.samplers])

    def stop(self, timeout: float | None = 5.0) -> None:
        # Signal everyone first so the CPU window does not delay the rest
        for sampler in self.samplers:
            sampler.request_stop()
        for sampler in self.samplers:
            sampler.stop(timeout=timeout)
        log.info("samplers_stopped")
