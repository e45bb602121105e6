"""
=============================================================================
NORMAN CLIENT
=============================================================================

Sends a request packet and waits for the response on its own port.

=============================================================================
THE CLIENT IS ALSO A SERVER
=============================================================================

    ┌──────────────────────┐                      ┌──────────────────────┐
    │ Client               │                      │ Server               │
    │                      │  1. connect, write   │                      │
    │  (ephemeral port) ───┼─────────────────────►│ :7878                │
    │                      │                      │                      │
    │  :7575 (listening) ◄─┼──────────────────────┼── 2. new connection  │
    │                      │     response frame   │                      │
    └──────────────────────┘                      └──────────────────────┘

The listener is bound BEFORE the request goes out. Otherwise a fast
server can try to deliver before anyone is listening and get
"connection refused".

=============================================================================
USAGE
=============================================================================

    norman-client 127.0.0.1 7878 --command "uname -a"

    client = Client(ClientConfig(host="10.0.0.5", timeout=10))
    response = client.run_command("echo hello")
    print(response.payload.data)      # "hello"

=============================================================================
"""

import argparse
import logging
import socket
import sys
from typing import Optional

from .config import ClientConfig
from .core import Connection
from .protocol import (
    Packet,
    RequestType,
    Service,
    ProtocolError,
    encode_bytes,
    decode_bytes,
)


logger = logging.getLogger(__name__)


class Client:
    """
    Sends NORMAN requests and collects their responses.

    Each call to request() is one exchange: bind the response port,
    send, accept exactly one response connection, close everything.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()
        self.config.validate()

    def _bind_listener(self) -> socket.socket:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            listener.bind((self.config.listen_host, self.config.response_port))
        except OSError as e:
            listener.close()
            logger.error(
                f"Failed to bind response listener on "
                f"{self.config.listen_host}:{self.config.response_port}: {e}"
            )
            raise
        listener.listen(1)
        listener.settimeout(self.config.timeout)
        return listener

    def send(self, packet: Packet) -> None:
        """Connect to the server, write one frame, close."""
        with socket.create_connection(
            (self.config.host, self.config.port), timeout=self.config.timeout
        ) as sock:
            sock.sendall(encode_bytes(packet))
        logger.debug(f"Sent request to {self.config.host}:{self.config.port}")

    def request(self, packet: Packet) -> Packet:
        """
        Send `packet` and wait for the server's response.

        Returns:
            The decoded response packet. Failed requests come back as
            packets with req_type ERROR when the server answers errors.

        Raises:
            OSError: Connect, bind or read failure; socket.timeout if the
                     configured timeout expires.
            ProtocolError: The response frame could not be decoded.
        """
        with self._bind_listener() as listener:
            self.send(packet)

            client_socket, address = listener.accept()
            with Connection(socket=client_socket, address=address,
                            timeout=self.config.timeout) as conn:
                raw = conn.read_once(self.config.buffer_size)

        response = decode_bytes(raw)
        logger.debug(
            f"Received {response.meta.req_type.value} "
            f"{response.meta.status} from {address[0]}"
        )
        return response

    def run_command(self, command: str, service: Service = Service.SHELL) -> Packet:
        """Send the canonical request for `command` and return the response."""
        return self.request(Packet.request(command, service=service))


def main(argv=None):
    """
    Client CLI entry point.

    Exit status: 0 on a RETURN response, 1 on an ERROR response or any
    network/protocol failure.
    """
    parser = argparse.ArgumentParser(
        prog="norman-client",
        description="Send a command to a NORMAN server and print its output",
    )
    parser.add_argument("host", help="Server host")
    parser.add_argument("port", type=int, help="Server request port")
    parser.add_argument(
        "--command", "-c",
        default='echo "Hello World"',
        help='Command to run remotely (default: echo "Hello World")',
    )
    parser.add_argument(
        "--service", "-s",
        choices=[s.value for s in Service if s is not Service.UNKNOWN],
        default=Service.SHELL.value,
        help="Target service (default: SHELL)",
    )
    parser.add_argument(
        "--listen-host",
        default="",
        help="Interface to receive the response on (default: all interfaces)",
    )
    parser.add_argument(
        "--response-port", "-r",
        type=int,
        default=ClientConfig.response_port,
        help=f"Port to receive the response on (default: {ClientConfig.response_port})",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Seconds to wait for the response (default: wait forever)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        client = Client(ClientConfig(
            host=args.host,
            port=args.port,
            listen_host=args.listen_host,
            response_port=args.response_port,
            timeout=args.timeout,
        ))
        response = client.run_command(args.command, service=Service(args.service))
    except (OSError, ProtocolError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(response.payload.data)

    if response.meta.req_type is RequestType.ERROR:
        sys.exit(1)


if __name__ == "__main__":
    main()
