"""
=============================================================================
NORMAN CONFIGURATION
=============================================================================

Centralized configuration for the server (dispatcher) and the client.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments
       └── norman-server 8 --port 7878

    2. Environment variables
       └── NORMAN_WORKERS=8 norman-server 8

    3. Default values (in these dataclasses)

=============================================================================
THE TWO PORTS
=============================================================================

Every NORMAN participant is both a client and a server:

    client ──connect──► server:7878        request goes this way
    client:7575 ◄──connect── server        response comes back this way

The request port and the response port are fixed and independent. The
server never answers on the inbound socket.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .protocol import PROTOCOL_VERSION


DEFAULT_REQUEST_PORT = 7878
DEFAULT_RESPONSE_PORT = 7575
DEFAULT_READ_CAPACITY = 512

ERROR_POLICIES = ("respond", "abort")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


@dataclass
class ServerConfig:
    """
    Configuration for the NORMAN server.

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    RESPONSE DELIVERY
    - response_host, response_port

    WORKERS
    - workers

    BEHAVIOR
    - error_policy, protocol_version

    LOGGING
    - log_level
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """The IP address the request listener binds to."""

    port: int = DEFAULT_REQUEST_PORT
    """Request port clients connect to."""

    backlog: int = 128
    """
    Listen backlog. The acceptor is single-threaded, so this kernel queue
    is the only buffer in front of the worker pool.
    """

    buffer_size: int = DEFAULT_READ_CAPACITY
    """
    Capacity of the single read done per request. Frames longer than
    this are truncated.
    """

    timeout: Optional[float] = None
    """
    Socket timeout for inbound reads and outbound delivery.
    None = block forever. A stalled peer then pins its worker for good.
    """

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE DELIVERY
    # ─────────────────────────────────────────────────────────────────────

    response_host: Optional[str] = None
    """Where responses are delivered. None = the requesting peer's IP."""

    response_port: int = DEFAULT_RESPONSE_PORT
    """The fixed port clients listen on for responses."""

    # ─────────────────────────────────────────────────────────────────────
    # WORKERS
    # ─────────────────────────────────────────────────────────────────────

    workers: int = 4
    """Number of worker threads. Fixed for the life of the server."""

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOR
    # ─────────────────────────────────────────────────────────────────────

    error_policy: str = "respond"
    """
    What a malformed frame or failed command does to its job.
    "respond" - deliver an ERROR packet to the client
    "abort"   - drop the connection, log, move on (legacy behavior)
    """

    protocol_version: str = PROTOCOL_VERSION
    """Version stamped on error packets when the request gave none."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        NORMAN_HOST            Listen host (default: 127.0.0.1)
        NORMAN_PORT            Request port (default: 7878)
        NORMAN_WORKERS         Worker threads (default: 4)
        NORMAN_RESPONSE_HOST   Response host (default: requesting peer)
        NORMAN_RESPONSE_PORT   Response port (default: 7575)
        NORMAN_TIMEOUT         Socket timeout in seconds (default: none)
        NORMAN_ERROR_POLICY    respond | abort (default: respond)
        NORMAN_LOG_LEVEL       Logging level (default: INFO)
        """
        return cls(
            host=os.getenv("NORMAN_HOST", "127.0.0.1"),
            port=int(os.getenv("NORMAN_PORT", str(DEFAULT_REQUEST_PORT))),
            workers=int(os.getenv("NORMAN_WORKERS", "4")),
            response_host=os.getenv("NORMAN_RESPONSE_HOST") or None,
            response_port=int(os.getenv("NORMAN_RESPONSE_PORT", str(DEFAULT_RESPONSE_PORT))),
            timeout=_optional_float(os.getenv("NORMAN_TIMEOUT")),
            error_policy=os.getenv("NORMAN_ERROR_POLICY", "respond"),
            log_level=os.getenv("NORMAN_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup so bad values fail fast, before any socket is
        bound or thread started.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not 0 < self.response_port < 65536:
            raise ValueError(f"Invalid response port: {self.response_port}. Must be 1-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.error_policy not in ERROR_POLICIES:
            raise ValueError(
                f"error_policy must be one of {', '.join(ERROR_POLICIES)}, "
                f"got {self.error_policy!r}"
            )


@dataclass
class ClientConfig:
    """Configuration for the NORMAN client."""

    host: str = "127.0.0.1"
    """Server to send requests to."""

    port: int = DEFAULT_REQUEST_PORT
    """Server request port."""

    listen_host: str = ""
    """
    Interface the response listener binds to. "" = every interface; the
    server answers whichever address the request came from.
    """

    response_port: int = DEFAULT_RESPONSE_PORT
    """Port the response listener binds to."""

    buffer_size: int = DEFAULT_READ_CAPACITY
    """Capacity of the single read of the response."""

    timeout: Optional[float] = None
    """How long to wait for the response. None = forever."""

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if not 0 <= self.response_port < 65536:
            raise ValueError(f"Invalid response port: {self.response_port}. Must be 0-65535.")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
