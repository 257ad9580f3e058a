"""Request dispatch: map a request line to a JSON document."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from gimli.models import CpuUsage, LoadAverage, NetInterface
from gimli.snapshot import Snapshot

LINE_END = "\r\n"
ERROR_BODY = json.dumps({"err": 1}, separators=(",", ":")) + LINE_END

Payload = dict[str, Any]


def uptime_parts(seconds: int) -> list[int]:
    """Split uptime into [days, hours within the day, minutes within the hour]."""
    return [seconds // 86400, seconds // 3600 % 24, seconds // 60 % 60]


def render_cpu(cpu: CpuUsage) -> dict[str, float]:
    return {
        "us": round(cpu.user, 1),
        "sy": round(cpu.system, 1),
        "id": round(cpu.idle, 1),
        "wa": round(cpu.iowait, 1),
        "ni": round(cpu.nice, 1),
    }


def render_load(load: LoadAverage) -> list[float]:
    return [round(value, 2) for value in load.as_list()]


def render_netifs(interfaces: tuple[NetInterface, ...]) -> list[dict[str, str]]:
    return [{"name": nif.name, "ip": nif.ipv4} for nif in interfaces]


def cpu_payload(snapshot: Snapshot) -> Payload:
    return {"cpu": render_cpu(snapshot.get_cpu())}


def load_payload(snapshot: Snapshot) -> Payload:
    return {"load": render_load(snapshot.get_load())}


def uptime_payload(snapshot: Snapshot) -> Payload:
    return {"uptime": uptime_parts(snapshot.get_memory().uptime)}


def procs_payload(snapshot: Snapshot) -> Payload:
    return {"procs": snapshot.get_memory().procs}


def cores_payload(snapshot: Snapshot) -> Payload:
    return {"cores": snapshot.core_count}


def net_payload(snapshot: Snapshot) -> Payload:
    return {"netifs": render_netifs(snapshot.get_interfaces())}


def root_payload(snapshot: Snapshot) -> Payload:
    """
    Every family in one document.

    Each family is read exactly once, so uptime and procs always come from
    the same memory record.
    """
    memory = snapshot.get_memory()
    return {
        "cpu": render_cpu(snapshot.get_cpu()),
        "load": render_load(snapshot.get_load()),
        "uptime": uptime_parts(memory.uptime),
        "procs": memory.procs,
        "cores": snapshot.core_count,
        "netifs": render_netifs(snapshot.get_interfaces()),
    }


@dataclass(slots=True, frozen=True)
class Route:
    """A request-line prefix and the payload it produces."""

    prefix: str
    handler: Callable[[Snapshot], Payload]
    pretty: bool = False

    def matches(self, line: str) -> bool:
        return line.startswith(self.prefix)


DEFAULT_ROUTES = (
    Route("GET /cpu", cpu_payload),
    Route("GET /load", load_payload),
    Route("GET /uptime", uptime_payload),
    Route("GET /procs", procs_payload),
    Route("GET /cores", cores_payload),
    Route("GET /net", net_payload),
    Route("GET / HTTP", root_payload, pretty=True),
)


class RequestRouter:
    """
    Resolves request lines against an ordered routing table.

    Matching is a case-sensitive prefix test. Routes are tried longest
    prefix first, so a more specific prefix is never shadowed by a shorter
    one that happens to share its start. Anything unmatched renders the
    {"err":1} sentinel.
    """

    def __init__(self, snapshot: Snapshot, routes: tuple[Route, ...] = DEFAULT_ROUTES) -> None:
        self._snapshot = snapshot
        # sorted() is stable, so equal-length prefixes keep table order
        self._routes = tuple(sorted(routes, key=lambda route: len(route.prefix), reverse=True))

    def routes(self) -> list[str]:
        """Prefixes in the order they are tried."""
        return [route.prefix for route in self._routes]

    def resolve(self, line: str) -> Route | None:
        for route in self._routes:
            if route.matches(line):
                return route
        return None

    def dispatch(self, line: str) -> str:
        """Render the response body for one request line, terminator included."""
        route = self.resolve(line)
        if route is None:
            return ERROR_BODY
        payload = route.handler(self._snapshot)
        if route.pretty:
            return json.dumps(payload, indent=4) + LINE_END
        return json.dumps(payload, separators=(",", ":")) + LINE_END
