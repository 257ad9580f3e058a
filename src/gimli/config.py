"""Runtime configuration for the gimli server."""

from dataclasses import dataclass

DEFAULT_PORT = 1337


@dataclass(slots=True)
class ServerConfig:
    """Server settings. Populated from command-line flags only."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    backlog: int = 5
    max_connections: int = 64  # In-flight connection cap
    read_timeout: float = 5.0  # Seconds
    recv_size: int = 1024  # Bytes read per request
    max_interfaces: int = 16
    log_level: str = "info"
    log_format: str = "console"  # 'console' or 'json'

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if self.max_connections < 1:
            raise ValueError("max_connections must be at least 1")
        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be positive")
        if self.recv_size < 1:
            raise ValueError("recv_size must be at least 1")
        if self.max_interfaces < 0:
            raise ValueError("max_interfaces must be non-negative")
