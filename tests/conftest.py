"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from norman import ConnectionDispatcher, ServerConfig, Client, ClientConfig
from norman.protocol import Packet


def get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    return get_free_port()


@pytest.fixture
def canonical_request() -> Packet:
    """The canonical SHELL request for `echo hello`."""
    return Packet.request("echo hello")


class DispatcherThread:
    """Runs a ConnectionDispatcher in a background thread."""

    def __init__(self, dispatcher: ConnectionDispatcher):
        self.dispatcher = dispatcher
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.dispatcher.address[1]

    def start(self):
        """Start the dispatcher and wait for it to listen."""
        self._thread = threading.Thread(
            target=self.dispatcher.run,
            kwargs={"configure_logging": False},
            daemon=True,
        )
        self._thread.start()

        if not self.dispatcher.wait_until_ready(timeout=5.0):
            raise RuntimeError("Dispatcher failed to start")

    def stop(self):
        """Stop accepting and wait for the pool to drain."""
        self.dispatcher.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


def make_dispatcher(response_port: int, **overrides) -> DispatcherThread:
    config = ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=2,
        response_port=response_port,
        timeout=5.0,
        log_level="WARNING",
    )
    for name, value in overrides.items():
        setattr(config, name, value)
    return DispatcherThread(ConnectionDispatcher(config))


@pytest.fixture
def response_port() -> int:
    """Port the test client listens on for responses."""
    return get_free_port()


@pytest.fixture
def running_dispatcher(response_port: int) -> Generator[DispatcherThread, None, None]:
    """A dispatcher answering ERROR packets on bad requests."""
    server = make_dispatcher(response_port)
    server.start()

    yield server

    server.stop()


@pytest.fixture
def client(running_dispatcher: DispatcherThread, response_port: int) -> Client:
    """A client pointed at the running dispatcher."""
    return Client(ClientConfig(
        host="127.0.0.1",
        port=running_dispatcher.port,
        response_port=response_port,
        timeout=5.0,
    ))
