"""Tests for request dispatch."""

import json

import pytest

from gimli.models import MemoryInfo, NetInterface
from gimli.router import ERROR_BODY, RequestRouter, Route, uptime_parts
from gimli.snapshot import Snapshot


@pytest.fixture
def router(loaded_snapshot):
    return RequestRouter(loaded_snapshot)


def body(router: RequestRouter, line: str) -> dict:
    rendered = router.dispatch(line)
    assert rendered.endswith("\r\n")
    return json.loads(rendered)


def test_uptime_parts():
    """Test uptime splits into days, hours and minutes."""
    assert uptime_parts(90125) == [1, 1, 2]
    assert uptime_parts(0) == [0, 0, 0]
    assert uptime_parts(59) == [0, 0, 0]
    assert uptime_parts(86399) == [0, 23, 59]


class TestRoutes:
    """Each route renders its family from the snapshot."""

    def test_cpu(self, router):
        """Test GET /cpu renders the five rounded buckets."""
        assert body(router, "GET /cpu HTTP/1.1") == {
            "cpu": {"us": 12.3, "sy": 5.5, "id": 76.1, "wa": 5.0, "ni": 1.0}
        }

    def test_load(self, router):
        """Test GET /load renders the 1/5/15 minute averages."""
        assert body(router, "GET /load HTTP/1.1") == {"load": [0.12, 0.34, 0.56]}

    def test_uptime(self, router):
        """Test GET /uptime renders days, hours and minutes."""
        assert body(router, "GET /uptime HTTP/1.1") == {"uptime": [1, 1, 2]}

    def test_procs(self, router):
        """Test GET /procs renders the process count."""
        assert body(router, "GET /procs") == {"procs": 321}

    def test_cores(self, router):
        """Test GET /cores renders the core count."""
        assert body(router, "GET /cores") == {"cores": 4}

    def test_net(self, router):
        """Test GET /net renders the interface list in order."""
        assert body(router, "GET /net HTTP/1.1") == {
            "netifs": [{"name": "lo", "ip": "127.0.0.1"}, {"name": "eth0", "ip": "10.0.0.2"}]
        }

    def test_net_empty(self, snapshot):
        """Test GET /net without interfaces has no separator artifacts."""
        assert RequestRouter(snapshot).dispatch("GET /net") == '{"netifs":[]}\r\n'

    def test_net_separator_count(self, snapshot):
        """Test N interfaces produce exactly N-1 separators."""
        snapshot.set_interfaces([NetInterface(f"eth{i}", f"10.0.0.{i}") for i in range(5)])

        rendered = RequestRouter(snapshot).dispatch("GET /net")

        assert rendered.count("},{") == 4
        assert len(json.loads(rendered)["netifs"]) == 5

    def test_root_document(self, router):
        """Test GET / HTTP renders every family, pretty-printed."""
        rendered = router.dispatch("GET / HTTP/1.1")
        document = json.loads(rendered)

        assert list(document) == ["cpu", "load", "uptime", "procs", "cores", "netifs"]
        assert document["load"] == [0.12, 0.34, 0.56]
        assert document["uptime"] == [1, 1, 2]
        assert len(document["netifs"]) == 2
        assert "\n    " in rendered

    def test_single_routes_are_compact(self, router):
        """Test single-family responses are one line."""
        rendered = router.dispatch("GET /load")
        assert rendered == '{"load":[0.12,0.34,0.56]}\r\n'


class TestErrors:
    """Unrecognized requests get the error sentinel."""

    @pytest.mark.parametrize(
        "line",
        ["GARBAGE", "", "get /cpu", "POST /cpu", "GET /", "GET /memory", " GET /cpu"],
    )
    def test_unknown_lines(self, router, line):
        """Test anything outside the table yields exactly {"err":1}."""
        assert router.dispatch(line) == '{"err":1}\r\n'
        assert router.dispatch(line) == ERROR_BODY


class TestRouting:
    """Prefix resolution order."""

    def test_longest_prefix_first(self, snapshot):
        """Test a short prefix never shadows a longer one."""
        routes = (
            Route("GET /l", lambda s: {"short": True}),
            Route("GET /load", lambda s: {"long": True}),
        )
        router = RequestRouter(snapshot, routes=routes)

        assert router.routes() == ["GET /load", "GET /l"]
        assert body(router, "GET /load") == {"long": True}
        assert body(router, "GET /lx") == {"short": True}

    def test_default_table(self, router):
        """Test every documented prefix is routed."""
        assert set(router.routes()) == {
            "GET /cpu",
            "GET /load",
            "GET /uptime",
            "GET /procs",
            "GET /cores",
            "GET /net",
            "GET / HTTP",
        }

    def test_prefix_matching_ignores_suffix(self, router):
        """Test anything after a known prefix is ignored."""
        assert body(router, "GET /cpuinfo?x=1") == body(router, "GET /cpu")


class RepublishingSnapshot(Snapshot):
    """Snapshot whose memory family changes after every read."""

    def __init__(self) -> None:
        super().__init__(core_count=2)
        self.reads = 0
        self.set_memory(MemoryInfo(procs=100, uptime=90125))

    def get_memory(self) -> MemoryInfo:
        current = super().get_memory()
        self.reads += 1
        self.set_memory(MemoryInfo(procs=current.procs + 1, uptime=current.uptime + 86400))
        return current


def test_root_document_reads_memory_once():
    """Test uptime and procs in the root document come from one memory record."""
    snapshot = RepublishingSnapshot()

    document = json.loads(RequestRouter(snapshot).dispatch("GET / HTTP/1.1"))

    assert snapshot.reads == 1
    assert document["procs"] == 100
    assert document["uptime"] == [1, 1, 2]
