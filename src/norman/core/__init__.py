"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking and concurrency plumbing under the dispatcher.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  • Binds the request port and listens                               │
    │  • Single-threaded accept() loop                                     │
    │  • Stops on SIGINT/SIGTERM or shutdown()                             │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ one job per accepted connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          WORKER POOL                                 │
    │  • Fixed number of worker threads                                    │
    │  • One unbounded FIFO queue, TERMINATE sentinel for shutdown         │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ worker handles the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Single fixed-capacity read of the inbound frame                   │
    │  • deliver(): response goes out on a fresh outbound connection       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, deliver
from .thread_pool import WorkerPool, Worker, WorkerState, Job, FunctionJob, TERMINATE

__all__ = [
    "SocketServer",     # Accepts connections on the request port
    "Connection",       # Inbound socket wrapper - single fixed read
    "ConnectionState",  # Enum for connection lifecycle states
    "deliver",          # Outbound one-shot delivery
    "WorkerPool",       # Fixed-size worker threads
    "Worker",
    "WorkerState",
    "Job",              # Abstract unit of work
    "FunctionJob",      # Job wrapping a plain callable
    "TERMINATE",        # Shutdown sentinel
]
