"""TCP front end: one request line in, one JSON document out."""

import contextlib
import os
import socket
import threading

from gimli.config import ServerConfig
from gimli.logs import get_logger
from gimli.router import RequestRouter

log = get_logger("server")

STATUS_BLOCK = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: application/json; charset=utf-8\r\n"
    b"\r\n"
)

# How often blocking waits wake up to check for shutdown
POLL_INTERVAL = 0.5


class StartupError(Exception):
    """The listening socket could not be set up."""


class TransportError(Exception):
    """Reading from or writing to one connection failed."""


def parse_request_line(data: bytes) -> str:
    """Return the first line of a raw request without its line terminator."""
    text = data.decode("latin-1")
    return text.split("\n", 1)[0].rstrip("\r")


class ConnectionServer:
    """
    Accepts connections and answers one request on each.

    Every accepted connection is served on its own thread. The number of
    connections in flight is capped by a semaphore: once the cap is reached
    the accept loop waits for a slot and new peers queue in the listen
    backlog.
    """

    def __init__(self, router: RequestRouter, config: ServerConfig | None = None) -> None:
        self._router = router
        self._config = config or ServerConfig()
        self._sock: socket.socket | None = None
        self._slots = threading.BoundedSemaphore(self._config.max_connections)
        self._stop_event = threading.Event()
        self._accept_thread: threading.Thread | None = None
        self._handlers: set[threading.Thread] = set()
        self._handlers_lock = threading.Lock()

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port). Only valid after bind()."""
        if self._sock is None:
            raise RuntimeError("server is not bound")
        host, port = self._sock.getsockname()[:2]
        return host, port

    @property
    def active_connections(self) -> int:
        with self._handlers_lock:
            return len(self._handlers)

    @property
    def is_running(self) -> bool:
        return self._sock is not None and not self._stop_event.is_set()

    def bind(self) -> None:
        """Create, bind and listen on the service socket."""
        if self._sock is not None:
            return
        host, port = self._config.host, self._config.port
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            raise StartupError(f"couldn't create socket: {exc}") from exc
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(self._config.backlog)
        except OSError as exc:
            sock.close()
            raise StartupError(f"couldn't listen on {host}:{port}: {exc}") from exc
        sock.settimeout(POLL_INTERVAL)
        self._sock = sock
        self._stop_event.clear()
        host, port = self.address
        log.info("listening", host=host, port=port, pid=os.getpid())

    def serve_forever(self) -> None:
        """Run the accept loop in the calling thread until stop() is called."""
        self.bind()
        sock = self._sock
        while not self._stop_event.is_set():
            if not self._slots.acquire(timeout=POLL_INTERVAL):
                continue
            try:
                conn, peer = sock.accept()
            except TimeoutError:
                self._slots.release()
                continue
            except OSError as exc:
                self._slots.release()
                if self._stop_event.is_set():
                    break
                log.warning("accept_failed", error=str(exc))
                continue
            self._spawn(conn, peer)

    def start(self) -> None:
        """Bind and run the accept loop on a background thread."""
        self.bind()
        self._accept_thread = threading.Thread(
            target=self.serve_forever,
            daemon=True,
            name="ConnectionServer",
        )
        self._accept_thread.start()

    def shutdown(self) -> None:
        """Ask the accept loop to exit. Safe to call from a signal handler."""
        self._stop_event.set()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop accepting, then wait for in-flight connections to finish.

        Args:
            timeout: How long to wait for each thread (seconds).
        """
        self._stop_event.set()
        if self._sock is not None:
            self._sock.close()
        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=timeout)
            self._accept_thread = None
        with self._handlers_lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler.join(timeout=timeout)
        self._sock = None
        log.info("server_stopped")

    def _spawn(self, conn: socket.socket, peer: tuple[str, int]) -> None:
        log.debug("connection", peer=f"{peer[0]}:{peer[1]}", fd=conn.fileno())
        handler = threading.Thread(
            target=self._handle_connection,
            args=(conn, peer),
            daemon=True,
            name=f"Connection-{peer[0]}:{peer[1]}",
        )
        with self._handlers_lock:
            self._handlers.add(handler)
        try:
            handler.start()
        except RuntimeError as exc:
            with self._handlers_lock:
                self._handlers.discard(handler)
            conn.close()
            self._slots.release()
            log.error("spawn_failed", peer=peer[0], error=str(exc))

    def _handle_connection(self, conn: socket.socket, peer: tuple[str, int]) -> None:
        try:
            with conn:
                self.serve_connection(conn)
        except TransportError as exc:
            log.debug("connection_aborted", peer=peer[0], error=str(exc))
        except Exception:
            log.exception("connection_crashed", peer=peer[0])
        finally:
            with self._handlers_lock:
                self._handlers.discard(threading.current_thread())
            self._slots.release()

    def serve_connection(self, conn: socket.socket) -> None:
        """
        Answer a single request on an open connection.

        The status block goes out before the body is rendered, so the peer
        sees a success header even when the body is the error sentinel.
        A peer that closes without sending anything gets no response.
        """
        conn.settimeout(self._config.read_timeout)
        try:
            data = conn.recv(self._config.recv_size)
        except OSError as exc:
            raise TransportError(f"read failed: {exc}") from exc
        if not data:
            return

        line = parse_request_line(data)
        log.debug("request", line=line)
        self._send(conn, STATUS_BLOCK)
        body = self._router.dispatch(line)
        self._send(conn, body.encode("utf-8"))
        # The peer may already be gone; the response is complete either way
        with contextlib.suppress(OSError):
            conn.shutdown(socket.SHUT_RDWR)

    @staticmethod
    def _send(conn: socket.socket, payload: bytes) -> None:
        try:
            conn.sendall(payload)
        except OSError as exc:
            raise TransportError(f"write failed: {exc}") from exc
