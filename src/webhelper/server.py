"""
=============================================================================
WEBHELPER SERVER
=============================================================================

The Server owns the route table, the middleware chain and the template
set, and adapts the socket transport to the handler contract.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SERVER ARCHITECTURE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                         ┌────────────────┐                          │
    │                         │     Server     │                          │
    │                         └───────┬────────┘                          │
    │            ┌────────────────────┼─────────────────────┐             │
    │            ▼                    ▼                     ▼             │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────────┐     │
    │    │ SocketServer │    │  ThreadPool  │    │ Router           │     │
    │    │ (accept)     │    │ (workers)    │    │ MiddlewareChain  │     │
    │    └──────┬───────┘    └──────┬───────┘    │ TemplateSet      │     │
    │           ▼                   ▼            └──────────────────┘     │
    │    ┌──────────────┐    ┌──────────────┐                             │
    │    │  Connection  │───►│  handle()    │                             │
    │    └──────────────┘    └──────────────┘                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT          SocketServer accepts, Connection queued on the pool
    2. READ + PARSE    worker reads one request, RequestParser parses it
    3. ROUTE           no path match → 404, wrong method → 405
    4. CONTEXT         one fresh RequestContext for this request only
    5. MIDDLEWARES     in registration order, first failure stops the chain
    6. HANDLER         runs only if every middleware succeeded
    7. FAILURE?        status_of(failure) → one plain-text error response
    8. SEND + CLOSE    response serialized with "Connection: close"

The context travels down the call chain as an argument. Nothing
request-specific is ever stored on the Server, so concurrent requests on
different workers cannot see each other's state.

=============================================================================
"""

import logging
import time
import uuid
from typing import Optional

from .config import ServerConfig
from .context import RequestContext
from .core import Connection, SocketServer, ThreadPool
from .errors import AppError, ServerStateError, status_of
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    ResponseWriter,
    Router,
    write_error,
)
from .middleware import Handler, MiddlewareChain, invoke
from .middleware.logging import RequestLog, access_timestamp
from .templating import TemplateSet


logger = logging.getLogger(__name__)


NOT_FOUND_MESSAGE = "404 page not found"


class Server:
    """
    HTTP server with a short-circuiting middleware chain.

    =========================================================================
    USAGE
    =========================================================================

        templates = TemplateSet.from_directory("templates")
        server = create_server(":8080", templates)

        server.use(RequestLogger())
        server.use(deny_paths("/view/oops", status=400,
                              message="oops indeed (denied)"))

        @server.get("/view/{title}")
        def view(ctx):
            return ctx.render("view.html", {"title": ctx.path_value("title")})

        server.post("/save/{title}", save_handler)

        server.run()      # blocks; raises OSError if the port is taken

    =========================================================================
    SETUP VS. SERVING
    =========================================================================

    Routes and middlewares are registered before run(). Once serving has
    started both are read-only, and use()/get()/post() raise
    ServerStateError.

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None,
                 templates: Optional[TemplateSet] = None):
        """
        Args:
            config: Server configuration (defaults if omitted).
            templates: Template set used by RequestContext.render().

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()
        self.templates = templates

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self._router = Router()
        self._middleware = MiddlewareChain()

        # ─────────────────────────────────────────────────────────────────
        # TRANSPORT COMPONENTS
        # ─────────────────────────────────────────────────────────────────
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            workers=self.config.workers,
            queue_size=self.config.queue_size,
        )

        self._sealed = False
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middlewares(self) -> MiddlewareChain:
        return self._middleware

    @property
    def address(self):
        """Bound (host, port) while running, configured address otherwise."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def use(self, middleware: Handler) -> "Server":
        """
        Append a middleware to the chain.

        Returns:
            Self for method chaining.

        Raises:
            ServerStateError: If the server is already serving.
        """
        self._middleware.add(middleware)
        return self

    def route(self, method: str, pattern: str, handler: Optional[Handler] = None):
        """
        Register a handler for (method, pattern).

        Works directly or as a decorator:

            server.route("GET", "/view/{title}", view)

            @server.route("GET", "/view/{title}")
            def view(ctx): ...

        Raises:
            RouteConflictError: If (method, pattern) is already registered.
            ServerStateError: If the server is already serving.
        """
        def register(func: Handler) -> Handler:
            if self._sealed:
                raise ServerStateError("Cannot add routes after the server has started")
            if not callable(func):
                raise TypeError(f"Handler must be callable, got {type(func).__name__}")
            self._router.add_route(method, pattern, func)
            return func

        if handler is not None:
            return register(handler)
        return register

    def get(self, pattern: str, handler: Optional[Handler] = None):
        """Register a GET route (also answers HEAD)."""
        return self.route("GET", pattern, handler)

    def post(self, pattern: str, handler: Optional[Handler] = None):
        """Register a POST route."""
        return self.route("POST", pattern, handler)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Turn one parsed request into a response.

        This is the whole framework seen from the transport: route lookup,
        context creation, middleware chain, handler, failure translation.
        Tests call it directly without any sockets.
        """
        start_time = time.time()
        writer = ResponseWriter()

        match = self._router.match(request.method, request.raw_path)
        if match is None:
            allowed = self._router.allowed_methods(request.raw_path)
            if allowed:
                writer.set_header("Allow", ", ".join(allowed))
                write_error(writer, HTTPStatus.METHOD_NOT_ALLOWED.phrase,
                            HTTPStatus.METHOD_NOT_ALLOWED)
            else:
                write_error(writer, NOT_FOUND_MESSAGE, HTTPStatus.NOT_FOUND)
        else:
            ctx = RequestContext(request, writer, self.templates, match.params)
            failure = self._dispatch(ctx, match.route.handler)
            if failure is not None:
                self._handle_error(ctx, failure)

        response = writer.to_response()
        self._log_access(request, response, start_time)
        return response

    def _dispatch(self, ctx: RequestContext, handler: Handler) -> Optional[Exception]:
        """
        Run the middleware chain, then the handler.

        Returns:
            The first failure, or None if the handler succeeded.
        """
        failure = self._middleware.run(ctx)
        if failure is not None:
            return failure
        return invoke(handler, ctx)

    def _handle_error(self, ctx: RequestContext, failure: Exception) -> None:
        """Write exactly one plain-text error response for a failure."""
        status = status_of(failure)

        if isinstance(failure, AppError) and status < 500:
            logger.info(f"{ctx.method} {ctx.path} → {status}: {failure}")
        else:
            logger.error(
                f"{ctx.method} {ctx.path} → {status}: {type(failure).__name__}: {failure}",
                exc_info=failure if failure.__traceback__ or failure.__cause__ else None,
            )

        ctx.write_error(str(failure), status)

    def _log_access(self, request: HTTPRequest, response: HTTPResponse, start_time: float):
        query = "&".join(
            f"{key}={value}"
            for key, values in request.query_params.items()
            for value in values
        )
        RequestLog(
            request_id=str(uuid.uuid4())[:8],
            method=request.method,
            path=request.path,
            query=query,
            client_ip=request.client_address[0] if request.client_address else "",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=(time.time() - start_time) * 1000,
            timestamp=access_timestamp(),
        ).emit(self.config.log_format)

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Bind, listen and serve until shutdown (blocking).

        Raises:
            OSError: If the listen address cannot be bound.
            ServerStateError: If the server was already started once.
        """
        if self._sealed:
            raise ServerStateError("Server has already been started")

        self._setup_logging()
        self._socket_server.bind()

        self._sealed = True
        self._middleware.freeze()
        self._running = True
        self._thread_pool.start()

        host, port = self._socket_server.address
        logger.info(
            f"Serving {len(self._router)} routes with {len(self._middleware)} "
            f"middlewares on {host}:{port}"
        )
        for registered in self._router.routes:
            logger.debug(f"  {registered.method:<6} {registered.pattern}")

        try:
            self._socket_server.serve_forever(self._handle_connection)
        finally:
            self._shutdown()

    def shutdown(self) -> None:
        """Ask a running server to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("webhelper").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # TRANSPORT ADAPTER
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a connection on the pool (accept thread)."""
        if not self._thread_pool.submit(self._process_connection, conn):
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Read, handle and answer one request (worker thread)."""
        with conn:
            try:
                raw_request = conn.read_request()
                if raw_request is None:
                    return
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.info(f"[{conn.id}] Bad request: {e}")
                self._send_error(conn, e.status_code, str(e))
                return
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return

            response = self.handle(request)
            response.headers["Connection"] = "close"
            conn.send_response(
                response.to_bytes(self.config.server_name,
                                  include_body=request.method != "HEAD")
            )

    def _send_error(self, conn: Connection, status: int, message: str):
        """Answer a transport-level failure before any handler ran."""
        writer = ResponseWriter()
        write_error(writer, message, status)
        response = writer.to_response()
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))


def create_server(address: str = ":8080", templates: Optional[TemplateSet] = None,
                  **config_overrides) -> Server:
    """
    Create a Server listening on a "host:port" address.

    Args:
        address: Listen address, e.g. ":8080" or "127.0.0.1:0".
        templates: Shared template set.
        **config_overrides: Extra ServerConfig fields.

    Example:
        server = create_server(":8080", TemplateSet.from_directory("templates"))
    """
    return Server(ServerConfig.from_address(address, **config_overrides), templates)
