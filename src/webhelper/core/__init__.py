"""
Host transport: sockets, connections and worker threads.

    socket_server.py  SocketServer (bind, accept loop, signals)
    connection.py     Connection (read one request, send, close)
    thread_pool.py    ThreadPool (fixed workers, bounded queue)
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool, Worker, Task

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ThreadPool",
    "Worker",
    "Task",
]
