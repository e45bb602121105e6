"""
=============================================================================
CONNECTION HANDLING
=============================================================================

Wraps the sockets on both sides of a NORMAN exchange.

=============================================================================
ONE READ, FIXED CAPACITY
=============================================================================

TCP is a byte stream, so a reader normally loops until it sees a message
boundary. NORMAN does not. The contract is a SINGLE recv() into a buffer
of fixed capacity (512 bytes by default):

    client sends 300 bytes   → read_once() returns all 300
    client sends 900 bytes   → read_once() returns the first 512,
                               the rest is never read

A truncated frame loses its trailing fields and fails the 11-field check
in the codec. That is the documented limit of the protocol: the read is
bounded, it never loops and it never grows a buffer.

=============================================================================
TWO CONNECTIONS PER EXCHANGE
=============================================================================

    ┌────────┐   request    ┌────────┐
    │ client │ ───────────► │ server │   inbound: read once, never written
    │        │              │        │
    │        │ ◄─────────── │        │   outbound: deliver(), fresh socket
    └────────┘   response   └────────┘   to the client's response port

The inbound socket is only flushed and closed. The response always goes
out on a brand-new connection opened by deliver().

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of an inbound connection."""
    NEW = "new"                # Just accepted
    READING = "reading"        # Inside read_once()
    PROCESSING = "processing"  # Frame read, job is working on it
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    An accepted inbound connection.

    Attributes:
        socket: The accepted socket.
        address: Peer (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current connection state.
        created_at: When the connection was accepted.
        bytes_read: Size of the frame read, 0 before the read.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_read: int = 0

    timeout: Optional[float] = None

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        """Get the peer IP address."""
        return self.address[0]

    @property
    def client_port(self) -> int:
        """Get the peer port."""
        return self.address[1]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    def read_once(self, capacity: int) -> bytes:
        """
        Perform the single fixed-capacity read of a request frame.

        Args:
            capacity: Maximum number of bytes to take from the socket.

        Returns:
            Up to `capacity` bytes; empty if the peer closed without
            sending anything.

        Raises:
            OSError: On socket errors, including socket.timeout when a
                     timeout is configured.
        """
        self.state = ConnectionState.READING
        data = self.socket.recv(capacity)
        self.bytes_read = len(data)
        self.state = ConnectionState.PROCESSING

        if len(data) == capacity:
            logger.debug(f"[{self.id}] Read filled the {capacity}-byte buffer; frame may be truncated")

        return data

    def flush(self):
        """
        Kept for the inbound contract: the request socket is flushed,
        never written. Python sockets are unbuffered, so nothing to do.
        """

    def close(self):
        """Close the inbound socket. Safe to call more than once."""
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions


def deliver(host: str, port: int, data: bytes, timeout: Optional[float] = None) -> None:
    """
    Send `data` over a brand-new outbound connection, then close it.

    This is how every response leaves the server: connect to the peer's
    listening port, write everything, shut down, close.

    Args:
        host: Destination host.
        port: Destination port (the peer's response port).
        data: Bytes to send.
        timeout: Connect/send timeout; None blocks indefinitely.

    Raises:
        OSError: If the connection cannot be opened or the write fails.
    """
    with socket.create_connection((host, port), timeout=timeout) as sock:
        sock.sendall(data)
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer closed first; data was already sent
    logger.debug(f"Delivered {len(data)} bytes to {host}:{port}")
