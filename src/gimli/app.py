"""gimli-top - Textual dashboard for a running gimli server."""

import argparse
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from queue import Empty, Queue
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from gimli.client import ClientError, fetch
from gimli.config import DEFAULT_PORT

CPU_FIELDS = (("us", "user", "green"), ("sy", "system", "red"), ("ni", "nice", "blue"), ("wa", "iowait", "yellow"))


@dataclass(slots=True)
class PollResult:
    """Outcome of one poll: a root document or the reason it failed."""

    document: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


class ServerPoller:
    """
    Polls a gimli server in a daemon thread and pushes results to a Queue.

    Unreachable servers produce a PollResult carrying the error, so the UI
    can show it instead of crashing.
    """

    def __init__(
        self,
        update_queue: Queue[PollResult],
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        poll_rate: float = 1.0,
        fetcher: Callable[..., dict[str, Any]] = fetch,
    ) -> None:
        self._queue = update_queue
        self._host = host
        self._port = port
        self._poll_rate = poll_rate
        self._fetcher = fetcher
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def target(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True, name="ServerPoller")
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def poll_now(self) -> None:
        """Cut the current wait short."""
        self._wake_event.set()

    def poll_once(self) -> PollResult:
        try:
            return PollResult(document=self._fetcher(self._host, self._port))
        except ClientError as exc:
            return PollResult(error=str(exc))

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self._queue.put(self.poll_once())
            self._wake_event.wait(timeout=self._poll_rate)
            self._wake_event.clear()


def format_uptime(parts: list[int]) -> str:
    """Format [days, hours, minutes] as shown in the header."""
    days, hours, minutes = parts
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}"
    return f"{hours:02d}:{minutes:02d}"


def usage_bar(percent: float, color: str, width: int = 20) -> str:
    bar_len = min(int(percent * width / 100), width)
    return f"[{color}]█[/{color}]" * bar_len + "[dim]░[/dim]" * (width - bar_len)


class HeaderStats(Static):
    """Header widget showing CPU, load and host statistics."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 6;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._document: dict[str, Any] = {}
        self._error: str | None = None

    def compose(self) -> ComposeResult:
        yield Horizontal(
            Static(self._get_cpu_info(), id="cpu-info"),
            Static(self._get_host_info(), id="host-info"),
        )

    def update_stats(self, result: PollResult) -> None:
        """Update the statistics from a poll result. Errors keep the last document."""
        self._error = result.error
        if result.error is None:
            self._document = result.document
        self._refresh_display()

    def _refresh_display(self) -> None:
        try:
            self.query_one("#cpu-info", Static).update(self._get_cpu_info())
            self.query_one("#host-info", Static).update(self._get_host_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_cpu_info(self) -> str:
        cpu = self._document.get("cpu")
        if not cpu:
            return "Waiting for CPU data..."
        lines = []
        for key, label, color in CPU_FIELDS:
            value = float(cpu.get(key, 0.0))
            lines.append(f"{label:<7}\\[{usage_bar(value, color)}] {value:5.1f}%")
        lines.append(f"{'idle':<7} {float(cpu.get('id', 0.0)):5.1f}%")
        return "\n".join(lines)

    def _get_host_info(self) -> str:
        status = f"[red]unreachable: {self._error}[/red]" if self._error else "[green]connected[/green]"
        if not self._document:
            return f"Status: {status}"
        load = self._document.get("load", [0.0, 0.0, 0.0])
        uptime = self._document.get("uptime", [0, 0, 0])
        return (
            f"Load average: {load[0]:.2f} {load[1]:.2f} {load[2]:.2f}\n"
            f"Uptime: {format_uptime(uptime)}\n"
            f"Procs: {self._document.get('procs', 0)}  Cores: {self._document.get('cores', 0)}\n"
            f"Status: {status}"
        )


class InterfaceTable(Container):
    """Container for the network interface table."""

    DEFAULT_CSS = """
    InterfaceTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._current_keys: set[str] = set()

    def compose(self) -> ComposeResult:
        yield DataTable(id="netif-table")

    def on_mount(self) -> None:
        table = self.query_one("#netif-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Interface", key="name", width=16)
        table.add_column("IPv4", key="ip")

    def update_interfaces(self, netifs: list[dict[str, str]]) -> None:
        """Sync the table rows with the given interfaces, keyed by name and address."""
        table = self.query_one("#netif-table", DataTable)
        rows = {f"{nif['name']}/{nif['ip']}": nif for nif in netifs}

        for key in self._current_keys - rows.keys():
            try:
                table.remove_row(key)
            except Exception:
                pass  # Row may not exist

        for key, nif in rows.items():
            if key not in self._current_keys:
                table.add_row(nif["name"], nif["ip"], key=key)

        self._current_keys = set(rows)


class GimliTopApp(App):
    """Live view of a gimli server."""

    TITLE = "gimli-top"
    SUB_TITLE = "gimli dashboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 7;
    }

    Horizontal {
        height: auto;
    }

    #cpu-info {
        width: 1fr;
        padding-right: 2;
    }

    #host-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        fetcher: Callable[..., dict[str, Any]] = fetch,
    ) -> None:
        super().__init__()
        self._update_queue: Queue[PollResult] = Queue()
        self._poller = ServerPoller(self._update_queue, host=host, port=port, fetcher=fetcher)
        self.sub_title = f"gimli @ {self._poller.target}"

    def compose(self) -> ComposeResult:
        yield HeaderStats(id="header-stats")
        yield InterfaceTable()
        yield Footer()

    def on_mount(self) -> None:
        self._poller.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent result."""
        result = None
        while True:
            try:
                result = self._update_queue.get_nowait()
            except Empty:
                break
        if result is not None:
            self._update_ui(result)

    def _update_ui(self, result: PollResult) -> None:
        self.query_one("#header-stats", HeaderStats).update_stats(result)
        if result.error is None:
            self.query_one(InterfaceTable).update_interfaces(result.document.get("netifs", []))

    def action_refresh(self) -> None:
        self._poller.poll_now()

    def action_quit(self) -> None:
        self._poller.stop()
        self.exit()


def main() -> None:
    """Entry point for gimli-top."""
    parser = argparse.ArgumentParser(prog="gimli-top", description="Dashboard for a gimli server.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args()
    GimliTopApp(host=args.host, port=args.port).run()


if __name__ == "__main__":
    main()
