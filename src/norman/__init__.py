"""
=============================================================================
NORMAN - Minimal Remote Command Execution Protocol
=============================================================================

A client asks a host to run a shell command; the host runs it and sends
the captured output back over a SEPARATE connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Client ──── request (port 7878) ────► ConnectionDispatcher         │
    │                                              │                       │
    │                                              ▼                       │
    │                                         WorkerPool                   │
    │                                              │ decode, run, encode   │
    │                                              ▼                       │
    │   Client ◄─── response (port 7575) ──── new outbound connection      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    norman/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # Server CLI (python -m norman / norman-server)
    ├── client.py            # Client + client CLI (norman-client)
    ├── config.py            # ServerConfig, ClientConfig
    ├── dispatcher.py        # ConnectionDispatcher
    ├── core/                # Sockets, connections, worker pool
    ├── protocol/            # Packet model and wire codec
    └── handlers/            # Command execution

=============================================================================
QUICK START
=============================================================================

    from norman import ConnectionDispatcher, ServerConfig

    ConnectionDispatcher(ServerConfig(workers=4)).run()

    # elsewhere
    from norman import Client

    response = Client().run_command("echo hello")
    print(response.payload.data)    # hello

=============================================================================
"""

__version__ = "0.1.0"

from .config import ServerConfig, ClientConfig
from .dispatcher import ConnectionDispatcher, create_dispatcher
from .client import Client

__all__ = [
    "ServerConfig",
    "ClientConfig",
    "ConnectionDispatcher",
    "create_dispatcher",
    "Client",
    "__version__",
]
