"""gimli - command-line entry point."""

import argparse
import signal
import sys

from gimli.config import DEFAULT_PORT, ServerConfig
from gimli.daemon import daemonize
from gimli.logs import LEVELS, get_logger, setup_logging
from gimli.monitor import SamplerGroup
from gimli.router import RequestRouter
from gimli.server import ConnectionServer, StartupError
from gimli.snapshot import Snapshot
from gimli.sources import MetricSource, PsutilSource

log = get_logger("cli")


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with exit status 1."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="gimli", description="Serve live host metrics as JSON.")
    parser.add_argument("--daemon", action="store_true", help="detach from the controlling terminal")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on (default: %(default)s)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="port to listen on (default: %(default)s)")
    parser.add_argument(
        "--max-connections",
        type=int,
        default=64,
        help="connections served concurrently (default: %(default)s)",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=5.0,
        help="seconds to wait for a request line (default: %(default)s)",
    )
    parser.add_argument("--log-level", default="info", choices=sorted(LEVELS))
    parser.add_argument("--log-format", default="console", choices=["console", "json"])
    return parser


def serve(config: ServerConfig, source: MetricSource | None = None) -> int:
    """Start the samplers and serve until SIGINT or SIGTERM. Returns the exit code."""
    source = source or PsutilSource()
    snapshot = Snapshot(core_count=source.core_count(), max_interfaces=config.max_interfaces)
    samplers = SamplerGroup(source, snapshot)
    server = ConnectionServer(RequestRouter(snapshot), config)

    try:
        server.bind()
    except StartupError as exc:
        log.error("startup_failed", error=str(exc))
        return 1

    def _shutdown(signum, frame) -> None:
        log.info("shutdown_requested", signal=signal.Signals(signum).name)
        server.shutdown()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    samplers.start()
    try:
        server.serve_forever()
    finally:
        server.stop()
        samplers.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the gimli server."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            max_connections=args.max_connections,
            read_timeout=args.read_timeout,
            log_level=args.log_level,
            log_format=args.log_format,
        )
    except ValueError as exc:
        parser.error(str(exc))

    if args.daemon:
        try:
            daemonize()
        except OSError as exc:
            print(f"gimli: couldn't daemonize: {exc}", file=sys.stderr)
            return 1

    setup_logging(config.log_level, config.log_format)
    return serve(config)


if __name__ == "__main__":
    sys.exit(main())
