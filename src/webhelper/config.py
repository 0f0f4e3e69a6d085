"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the webhelper transport and logging.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments (the application's CLI)                 │
    │      └── python -m wiki --address :3000                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── WEBHELPER_PORT=3000 python -m wiki                        │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Listen addresses may also be given the short way, "host:port", where an
empty host means every interface:

    ServerConfig.from_address(":8080")          → 0.0.0.0:8080
    ServerConfig.from_address("127.0.0.1:0")    → OS-assigned port

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for a webhelper Server.

    NETWORK
    - host, port, backlog, buffer_size, timeout, max_request_size

    WORKERS
    - workers, queue_size

    LOGGING
    - log_level, log_format

    IDENTITY
    - server_name
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Interface to bind. "0.0.0.0" for all interfaces."""

    port: int = 8080
    """TCP port. 0 lets the OS pick a free one (tests)."""

    backlog: int = 128
    """Maximum number of queued, not yet accepted connections."""

    buffer_size: int = 8192
    """recv() chunk size in bytes."""

    timeout: Optional[float] = 30.0
    """Socket read timeout in seconds. None blocks forever."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Requests larger than this are answered with 413."""

    # ─────────────────────────────────────────────────────────────────────
    # WORKER POOL
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 8
    """Number of worker threads handling connections."""

    queue_size: int = 128
    """Connections waiting for a worker. When full, clients get 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "webhelper/1.0"
    """Value of the Server response header."""

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_address(cls, address: str, **overrides) -> "ServerConfig":
        """
        Build a config from a "host:port" listen address.

        Args:
            address: ":8080", "localhost:8080", "[::1]:8080" ...
            **overrides: Any other ServerConfig field.

        Raises:
            ValueError: If the address has no valid port.
        """
        host, sep, port = address.rpartition(":")
        if not sep:
            raise ValueError(f"Invalid listen address {address!r}: missing port")
        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"Invalid listen address {address!r}: bad port {port!r}")
        host = host.strip("[]") or "0.0.0.0"
        return cls(host=host, port=port_number, **overrides)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        WEBHELPER_HOST       Server host (default: 127.0.0.1)
        WEBHELPER_PORT       Server port (default: 8080)
        WEBHELPER_WORKERS    Worker threads (default: 8)
        WEBHELPER_TIMEOUT    Read timeout in seconds (default: 30)
        WEBHELPER_LOG_LEVEL  Logging level (default: INFO)
        WEBHELPER_LOG_FORMAT Access log format (default: text)
        """
        return cls(
            host=os.getenv("WEBHELPER_HOST", "127.0.0.1"),
            port=int(os.getenv("WEBHELPER_PORT", "8080")),
            workers=int(os.getenv("WEBHELPER_WORKERS", "8")),
            timeout=float(os.getenv("WEBHELPER_TIMEOUT", "30")),
            log_level=os.getenv("WEBHELPER_LOG_LEVEL", "INFO"),
            log_format=os.getenv("WEBHELPER_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by the Server constructor so bad values fail at startup.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Use 'text' or 'json'.")
