"""Tests for the gimli client."""

import socket
import threading

import pytest

from gimli.client import ClientError, fetch, split_response
from gimli.config import ServerConfig
from gimli.router import RequestRouter
from gimli.server import STATUS_BLOCK, ConnectionServer


@pytest.fixture
def server(loaded_snapshot):
    srv = ConnectionServer(RequestRouter(loaded_snapshot), ServerConfig(host="127.0.0.1", port=0))
    srv.start()
    yield srv
    srv.stop()


def test_split_response():
    """Test status line, headers and body are separated."""
    status, headers, body = split_response(
        b"HTTP/1.1 200 OK\r\nContent-Type: application/json; charset=utf-8\r\n\r\n{\"procs\":1}\r\n"
    )

    assert status == "HTTP/1.1 200 OK"
    assert headers == {"content-type": "application/json; charset=utf-8"}
    assert body == '{"procs":1}\r\n'


def test_split_response_without_headers():
    """Test a truncated response is rejected."""
    with pytest.raises(ClientError):
        split_response(b"HTTP/1.1 200 OK\r\n")


def test_fetch_root_document(server):
    """Test fetch returns the decoded combined document."""
    host, port = server.address

    document = fetch(host, port)

    assert document["load"] == [0.12, 0.34, 0.56]
    assert document["netifs"][0] == {"name": "lo", "ip": "127.0.0.1"}


def test_fetch_single_route(server):
    """Test fetch can ask for one family."""
    host, port = server.address
    assert fetch(host, port, request="GET /uptime") == {"uptime": [1, 1, 2]}


def test_fetch_unreachable():
    """Test a closed port raises ClientError."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as placeholder:
        placeholder.bind(("127.0.0.1", 0))
        port = placeholder.getsockname()[1]

    with pytest.raises(ClientError):
        fetch("127.0.0.1", port, timeout=0.5)


def serve_canned(reply: bytes) -> tuple[str, int, threading.Thread]:
    """Answer one connection with a fixed reply, then close."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    host, port = listener.getsockname()

    def answer():
        with listener:
            conn, _ = listener.accept()
            with conn:
                conn.recv(1024)
                conn.sendall(reply)

    thread = threading.Thread(target=answer, daemon=True)
    thread.start()
    return host, port, thread


def test_split_response_rejects_non_utf8_body():
    """Test an undecodable body is reported as ClientError."""
    with pytest.raises(ClientError, match="UTF-8"):
        split_response(STATUS_BLOCK + b"\xff\xfe{}\r\n")


@pytest.mark.parametrize(
    "body",
    [b"\xff\xfe\xfd\r\n", b"[1, 2, 3]\r\n", b'"text"\r\n', b"not json\r\n"],
)
def test_fetch_rejects_unusable_bodies(body):
    """Test bodies that are not a UTF-8 JSON object raise ClientError."""
    host, port, thread = serve_canned(STATUS_BLOCK + body)

    with pytest.raises(ClientError):
        fetch(host, port, timeout=2.0)

    thread.join(timeout=2.0)
