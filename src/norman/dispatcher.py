"""
=============================================================================
CONNECTION DISPATCHER
=============================================================================

The NORMAN server: ties the socket server, the worker pool, the codec and
the shell handler together.

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. CLIENT CONNECTS                              (acceptor thread)
       └── SocketServer accepts on the request port

    2. QUEUE FOR PROCESSING                         (acceptor thread)
       └── ConnectionJob(conn) submitted to the WorkerPool, acceptor loops

    3. READ ONCE                                    (worker thread)
       └── single recv() of at most buffer_size bytes

    4. DECODE
       └── 11-field frame → Packet

    5. EXECUTE
       └── payload.data runs in the local shell, stdout captured

    6. BUILD RESPONSE
       └── RETURN packet, same version/service/return_output, FINE(200)

    7. DELIVER ON A NEW CONNECTION
       └── connect to (response_host or peer IP, response_port), write, close
       └── the inbound socket is flushed and closed, never written

=============================================================================
ERROR POLICY
=============================================================================

    ┌──────────────────────────┬──────────────────┬──────────────────────┐
    │  Failure                 │  "respond"       │  "abort"             │
    ├──────────────────────────┼──────────────────┼──────────────────────┤
    │  FieldCountMismatch      │  ERROR packet    │  job dropped, logged │
    │  CommandExecutionError   │  ERROR packet    │  job dropped, logged │
    │  OSError (read/deliver)  │  job dropped     │  job dropped         │
    └──────────────────────────┴──────────────────┴──────────────────────┘

In both modes only the job is lost; the worker goes back to the queue.
"respond" is the default so a malformed request still gets an answer.

=============================================================================
"""

import logging
from typing import Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, WorkerPool, Job, deliver
from .handlers import run_command, CommandExecutionError
from .protocol import (
    Packet,
    ProtocolError,
    RequestType,
    Service,
    Status,
    decode_bytes,
    encode_bytes,
)


logger = logging.getLogger(__name__)


class ConnectionJob(Job):
    """One accepted connection's full processing, as a pool job."""

    def __init__(self, dispatcher: "ConnectionDispatcher", conn: Connection):
        self.dispatcher = dispatcher
        self.conn = conn

    def run(self) -> None:
        self.dispatcher.process(self.conn)

    def __repr__(self) -> str:
        return f"ConnectionJob({self.conn.id})"


def build_response(request: Packet, output: str) -> Packet:
    """RETURN packet carrying a command's output back to the requester."""
    return Packet.build(
        version=request.header.version,
        return_output=request.header.return_output,
        service=request.header.service,
        req_type=RequestType.RETURN,
        status=Status.FINE,
        encoding_type="None",
        data=output,
        multi_packet=False,
    )


def build_error_response(
    error: Exception,
    request: Optional[Packet] = None,
    version: str = "NORMAN/0.1",
) -> Packet:
    """
    ERROR packet describing why a request failed.

    When the frame could not be decoded there is no request to copy
    fields from, so the configured version and UNKNOWN service are used.
    """
    # The wire format has no escaping; keep the delimiter out of the text
    message = str(error).replace("|", "/")

    if request is not None:
        version = request.header.version
        return_output = request.header.return_output
        service = request.header.service
    else:
        return_output = True
        service = Service.UNKNOWN

    return Packet.build(
        version=version,
        return_output=return_output,
        service=service,
        req_type=RequestType.ERROR,
        status=Status.ERROR,
        encoding_type="None",
        data=message,
        multi_packet=False,
    )


class ConnectionDispatcher:
    """
    The NORMAN server.

    Usage:
        dispatcher = ConnectionDispatcher(ServerConfig(workers=4))
        dispatcher.run()     # blocks until Ctrl+C / SIGTERM / stop()

    Components:
    - SocketServer: accepts on the request port
    - WorkerPool:   runs one ConnectionJob per accepted connection
    - codec:        decode_bytes / encode_bytes
    - handlers:     run_command
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Initialize the dispatcher.

        Args:
            config: Server configuration. Uses defaults if not provided.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail-fast on invalid config

        self._socket_server = SocketServer(self.config)

        # Created in run(): workers start as soon as the pool exists
        self._pool: Optional[WorkerPool] = None

        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound request address (real port once listening)."""
        return self._socket_server.address

    @property
    def pool(self) -> Optional[WorkerPool]:
        return self._pool

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self, configure_logging: bool = True):
        """
        Start the server (blocking).

        Args:
            configure_logging: Set up root logging from config.log_level.

        Raises:
            OSError: If the request port cannot be bound.
        """
        if configure_logging:
            self._setup_logging()

        self._pool = WorkerPool(self.config.workers)
        self._running = True

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Stop accepting. run() then drains the pool and returns."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the request port is listening."""
        return self._socket_server.wait_until_ready(timeout)

    def print_banner(self):
        """Print server startup information."""
        host, port = self.address
        response_host = self.config.response_host or "<peer>"
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  NORMAN server ({self.config.protocol_version})")
        print(f"  requests   tcp://{host}:{port}")
        print(f"  responses  tcp://{response_host}:{self.config.response_port}")
        print(f"  workers    {self.config.workers}")
        print(f"  errors     {self.config.error_policy}")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("norman").setLevel(level)

    def _shutdown(self):
        """
        Stop the pool after the accept loop has ended.

        Every job already queued still runs; shutdown() waits for them
        with no timeout.
        """
        logger.info("Shutting down server...")
        self._running = False

        if self._pool is not None:
            self._pool.shutdown()

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a connection for the pool. Runs on the acceptor thread.

        Args:
            conn: The accepted connection.
        """
        logger.debug(f"[{conn.id}] Queued connection from {conn.client_ip}:{conn.client_port}")
        self._pool.submit(ConnectionJob(self, conn))

    def process(self, conn: Connection):
        """
        Handle one connection end to end. Runs on a worker thread.

        Args:
            conn: The inbound connection.

        Raises:
            OSError: If reading the frame or delivering the response fails.
            ProtocolError: Malformed frame, with error_policy "abort".
            CommandExecutionError: Failed command, with error_policy "abort".
        """
        with conn:
            raw = conn.read_once(self.config.buffer_size)
            if not raw:
                logger.info(f"[{conn.id}] Peer closed without sending a frame")
                return

            request: Optional[Packet] = None
            try:
                request = decode_bytes(raw)
                logger.info(
                    f"[{conn.id}] {request.meta.req_type.value} "
                    f"{request.header.service.value} from {conn.client_ip}: "
                    f"{request.payload.data!r}"
                )
                output = run_command(request.payload.data)
                response = build_response(request, output)

            except (ProtocolError, CommandExecutionError) as e:
                if self.config.error_policy == "abort":
                    raise
                logger.warning(f"[{conn.id}] Request failed: {e}")
                response = build_error_response(
                    e, request, version=self.config.protocol_version
                )

            conn.flush()

            host = self.config.response_host or conn.client_ip
            deliver(
                host,
                self.config.response_port,
                encode_bytes(response),
                timeout=self.config.timeout,
            )
            logger.info(
                f"[{conn.id}] Delivered {response.meta.req_type.value} "
                f"to {host}:{self.config.response_port}"
            )


def create_dispatcher(config: Optional[ServerConfig] = None) -> ConnectionDispatcher:
    """
    Create a dispatcher.

    Example:
        dispatcher = create_dispatcher(ServerConfig(workers=8))
        dispatcher.run()
    """
    return ConnectionDispatcher(config)
