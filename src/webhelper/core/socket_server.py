"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Binds the listening socket and runs the accept loop. Each accepted client
socket is wrapped in a Connection and handed to a callback (the Server,
which queues it on the worker pool).

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Lifecycle                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   bind()            socket() → setsockopt() → bind() → listen()    │
    │       │             OSError here is fatal ("address in use")       │
    │       ▼                                                              │
    │   serve_forever()   install SIGINT/SIGTERM handlers (main thread)  │
    │       │             while running: accept() with 1s timeout        │
    │       ▼                                                              │
    │   shutdown()        sets an Event, loop exits within ~1s           │
    │       │                                                              │
    │       ▼                                                              │
    │   _cleanup()        restore signal handlers, close socket          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Signal handlers can only be installed from the main thread. When the
server runs in a background thread (tests, embedding) shutdown() has to be
called explicitly.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        server = SocketServer(config)
        server.bind()                        # raises OSError on failure
        server.serve_forever(handle_conn)    # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._shutdown_requested = threading.Event()
        self._bound_address: Optional[Tuple[str, int]] = None
        self._ready = threading.Event()
        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the configured one before bind()."""
        return self._bound_address or (self.config.host, self.config.port)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Useful in tests."""
        return self._ready.wait(timeout)

    # =========================================================================
    # SOCKET SETUP
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Avoid "Address already in use" while the old socket is in TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up every second so the running flag is rechecked.
        sock.settimeout(1.0)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen.

        Returns:
            The actual bound (host, port). Port 0 resolves to the OS choice.

        Raises:
            OSError: If the address cannot be bound.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        host, port = sock.getsockname()[:2]
        self._bound_address = (host, port)
        logger.info(f"Listening on {host}:{port}")
        return self._bound_address

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve_forever(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Args:
            connection_handler: Called with each new Connection on the
                                accept thread; must not block for long.
        """
        if self._socket is None:
            raise RuntimeError("serve_forever() called before bind()")

        self._setup_signals()
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while not self._shutdown_requested.is_set():
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._shutdown_requested.is_set():
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """
        Stop the accept loop. Idempotent, callable from any thread.

        A request made before serve_forever() starts is remembered, and the
        loop then exits right away.
        """
        if not self._shutdown_requested.is_set():
            logger.info("Shutting down socket server...")
        self._shutdown_requested.set()

    def _cleanup(self):
        self._restore_signals()
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._ready.clear()
        logger.info("Socket server stopped")
