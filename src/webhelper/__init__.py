"""
=============================================================================
WEBHELPER - Minimal Composable HTTP Middleware Framework
=============================================================================

webhelper sits between a raw socket transport and application handlers and
gives them four things:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       WEBHELPER AT A GLANCE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. RequestContext   one per request: path values, form values,   │
    │                       render, redirect, write_error                 │
    │                                                                      │
    │   2. MiddlewareChain  ordered, stops at the first failure          │
    │                                                                      │
    │   3. AppError         failures that carry an HTTP status           │
    │                                                                      │
    │   4. TemplateSet      Jinja2 templates rendered through the context│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from webhelper import AppError, TemplateSet, create_server
    from webhelper.middleware import RequestLogger

    server = create_server(":8080", TemplateSet.from_directory("templates"))
    server.use(RequestLogger())

    @server.get("/hello/{name}")
    def hello(ctx):
        if ctx.path_value("name") == "nobody":
            return AppError(404, "no such person")
        ctx.write_string(f"hello {ctx.path_value('name')}")

    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .context import RequestContext
from .errors import (
    AppError,
    RenderError,
    RouteConflictError,
    ServerStateError,
    WebHelperError,
    new_error,
    status_of,
)
from .middleware import Handler, MiddlewareChain, RequestLogger, deny_paths
from .server import Server, create_server
from .templating import TemplateSet

__all__ = [
    "__version__",
    "ServerConfig",
    "RequestContext",
    "AppError",
    "RenderError",
    "RouteConflictError",
    "ServerStateError",
    "WebHelperError",
    "new_error",
    "status_of",
    "Handler",
    "MiddlewareChain",
    "RequestLogger",
    "deny_paths",
    "Server",
    "create_server",
    "TemplateSet",
]
