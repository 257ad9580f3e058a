"""Minimal client for a running gimli server."""

import json
import socket
from typing import Any

from gimli.config import DEFAULT_PORT

ROOT_REQUEST = "GET / HTTP/1.1"


class ClientError(Exception):
    """The server could not be reached or sent something unreadable."""


def split_response(raw: bytes) -> tuple[str, dict[str, str], str]:
    """Split a raw response into (status line, headers, body)."""
    head, sep, body = raw.partition(b"\r\n\r\n")
    if not sep:
        raise ClientError("response has no header terminator")
    status, *header_lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in header_lines:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ClientError(f"body is not UTF-8: {exc}") from exc
    return status, headers, text


def fetch(
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    request: str = ROOT_REQUEST,
    timeout: float = 5.0,
) -> dict[str, Any]:
    """Send one request line and return the decoded JSON body."""
    chunks = []
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            sock.sendall(request.encode("latin-1") + b"\r\n")
            while chunk := sock.recv(4096):
                chunks.append(chunk)
    except OSError as exc:
        raise ClientError(f"{host}:{port}: {exc}") from exc

    _, _, body = split_response(b"".join(chunks))
    try:
        document = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ClientError(f"invalid JSON body: {exc}") from exc
    if not isinstance(document, dict):
        raise ClientError(f"expected a JSON object, got {type(document).__name__}")
    return document
