"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket for the request port and runs the accept loop.

=============================================================================
SINGLE ACCEPTOR
=============================================================================

    ┌───────────────────────┐
    │   Listening Socket    │ ◄── bound once to HOST:7878
    └───────────┬───────────┘
                │ accept()   (one thread, sequential)
                ▼
          Connection(...)
                │
                └──► handler(conn)  → dispatcher submits a job and returns

Accepting never waits for a command to run: the handler only queues work.
But the acceptor is a single thread, so the listen backlog is the only
buffer between arriving clients and the worker pool.

=============================================================================
STOPPING THE LOOP
=============================================================================

accept() has a 1 second timeout so the loop can notice shutdown():

    while running:
        try:
            accept()           # at most 1s
        except timeout:
            continue           # re-check the running flag

SIGINT (Ctrl+C) and SIGTERM call shutdown() when the server was started
from the main thread. Signal handlers cannot be installed from any other
thread, so servers started in a background thread (tests) skip them.

=============================================================================
"""

import errno
import socket
import signal
import logging
import threading
import time
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_TIMEOUT = 1.0

# The peer went away between SYN and accept(); the listener is fine
PER_CONNECTION_ERRNOS = frozenset(
    code for code in (
        errno.ECONNABORTED,
        errno.ECONNRESET,
        errno.EPERM,
        getattr(errno, "EPROTO", None),
    )
    if code is not None
)

RESOURCE_ERRNOS = frozenset((errno.EMFILE, errno.ENFILE, errno.ENOBUFS, errno.ENOMEM))

ConnectionHandler = Callable[[Connection], None]


class SocketServer:
    """
    Listening socket plus the accept loop for the request port.

    Usage:
        def on_connection(conn: Connection):
            pool.submit(...)

        server = SocketServer(config)
        server.start(on_connection)  # Blocks until shutdown()
    """

    STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, config: ServerConfig):
        self.config = config

        self._listener: Optional[socket.socket] = None
        self._accepting = False

        # Set while the listener is accepting; tests wait on it
        self._listening = threading.Event()

        self._previous_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """
        The request address. With port 0 in the config this is the port
        the OS picked, for as long as the listener is open.
        """
        if self._listener is not None:
            return self._listener.getsockname()[:2]
        return (self.config.host, self.config.port)

    # =========================================================================
    # LISTENER
    # =========================================================================

    def _open_listener(self) -> socket.socket:
        """
        Create, bind and listen on the request port.

        Raises:
            OSError: If the address is unavailable.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # The request port is fixed, so allow rebinding during TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Frames are one small write each
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        sock.settimeout(ACCEPT_TIMEOUT)

        bind_to = (self.config.host, self.config.port)
        try:
            sock.bind(bind_to)
        except OSError as e:
            logger.error(f"Cannot bind request port {bind_to[0]}:{bind_to[1]}: {e}")
            sock.close()
            raise

        sock.listen(self.config.backlog)
        return sock

    def _close_listener(self):
        if self._listener is None:
            return
        try:
            self._listener.close()
        except OSError:
            pass
        self._listener = None

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _install_signal_handlers(self):
        """Route SIGINT/SIGTERM to shutdown(). Main thread only."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Started off the main thread; leaving signal handlers alone")
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, stopping")
            self.shutdown()

        for sig in self.STOP_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, on_signal)

    def _restore_signal_handlers(self):
        while self._previous_handlers:
            sig, handler = self._previous_handlers.popitem()
            signal.signal(sig, handler)

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def start(self, on_connection: ConnectionHandler):
        """
        Bind the request port and accept until shutdown().

        Args:
            on_connection: Receives every accepted Connection. Runs on the
                           acceptor thread, so it must only queue work.

        Raises:
            OSError: If the request port cannot be bound.
        """
        self._listener = self._open_listener()
        self._accepting = True
        self._install_signal_handlers()

        host, port = self.address
        logger.info(f"Accepting requests on {host}:{port}")
        self._listening.set()

        try:
            while self._accepting:
                conn = self._accept_one()
                if conn is not None:
                    on_connection(conn)
        finally:
            self._listening.clear()
            self._restore_signal_handlers()
            self._close_listener()
            self._accepting = False
            logger.info("Request port closed")

    def _accept_one(self) -> Optional[Connection]:
        """
        Wait up to ACCEPT_TIMEOUT for one client.

        Returns None on timeout and on errors that only concern the one
        connection being accepted. Out of descriptors or buffers, it
        backs off for ACCEPT_TIMEOUT and keeps going. Any other failure
        means the listener itself is gone, and ends the loop.
        """
        try:
            client_socket, peer = self._listener.accept()
        except socket.timeout:
            return None
        except OSError as e:
            if not self._accepting:
                return None
            if e.errno in PER_CONNECTION_ERRNOS:
                logger.warning(f"Dropped a connection during accept(): {e}")
                return None
            if e.errno in RESOURCE_ERRNOS:
                logger.error(f"accept() out of resources, retrying: {e}")
                time.sleep(ACCEPT_TIMEOUT)
                return None
            logger.error(f"accept() failed, closing request port: {e}")
            self._accepting = False
            return None

        logger.debug(f"Accepted {peer[0]}:{peer[1]}")
        return Connection(socket=client_socket, address=peer, timeout=self.config.timeout)

    def shutdown(self):
        """
        Make the accept loop exit within ACCEPT_TIMEOUT.

        Safe to call from a signal handler, another thread, or twice.
        """
        if self._accepting:
            logger.info("Stopping accept loop")
        self._accepting = False

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the request port is listening. False on timeout."""
        return self._listening.wait(timeout)
