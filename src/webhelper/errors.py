"""
=============================================================================
APPLICATION ERRORS
=============================================================================

Typed failures that carry an HTTP status code.

=============================================================================
HOW FAILURES BECOME RESPONSES
=============================================================================

Handlers and middlewares report failure by returning (or raising) an
exception. The server translates that failure into exactly one plain-text
error response:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     FAILURE → STATUS MAPPING                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   AppError(400, "oops indeed (denied)")  ──►  400  "oops indeed..." │
    │   AppError(404, "no such page")          ──►  404  "no such page"   │
    │   RenderError("view.html", ...)          ──►  500  "template ..."   │
    │   OSError("disk full")                   ──►  500  "disk full"      │
    │   anything else                          ──►  500  str(exc)         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

status_of() implements this mapping. It is the only place that decides
which status a failure maps to.

=============================================================================
FRAMEWORK MISUSE
=============================================================================

Setup-time mistakes are not request failures and never reach a client:

    RouteConflictError   same (method, pattern) registered twice
    ServerStateError     middleware or route added after run()

Both derive from WebHelperError so callers can catch them together.

=============================================================================
"""

from typing import Optional


INTERNAL_SERVER_ERROR = 500


class AppError(Exception):
    """
    A failure that carries an HTTP status code and a message.

    AppError is an exception, so a handler may either return it or raise it:

        def view(ctx):
            return AppError(404, "no such page")

        def view(ctx):
            raise AppError(404, "no such page")

    Both produce a 404 response whose body is "no such page".

    Attributes:
        status: HTTP status code (100-599).
        message: Human-readable message, also used as the response body.

    Raises:
        ValueError: If status is not a valid HTTP status code.
    """

    def __init__(self, status: int, message: str):
        if isinstance(status, bool) or not isinstance(status, int) or not 100 <= status <= 599:
            raise ValueError(f"Invalid HTTP status for AppError: {status!r}")
        super().__init__(message)
        self._status = int(status)
        self._message = message

    @property
    def status(self) -> int:
        return self._status

    @property
    def message(self) -> str:
        return self._message

    def __str__(self) -> str:
        return self._message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self._status}, message={self._message!r})"


class RenderError(AppError):
    """
    Template lookup or evaluation failed.

    Always maps to 500. The original exception (jinja2 TemplateNotFound,
    UndefinedError, ...) is kept as __cause__ when raised with `from`.
    """

    def __init__(self, template_name: str, message: str):
        super().__init__(INTERNAL_SERVER_ERROR, message)
        self.template_name = template_name


def new_error(status: int, message: str) -> AppError:
    """
    Construct an AppError.

    Convenience factory mirroring the usual call site:

        return new_error(400, "oops indeed (denied)")
    """
    return AppError(status, message)


def status_of(failure: Optional[BaseException]) -> int:
    """
    Map a failure to the HTTP status it should produce.

    Args:
        failure: Any exception (or None).

    Returns:
        The carried status for an AppError, 500 for everything else.
    """
    if isinstance(failure, AppError):
        return failure.status
    return INTERNAL_SERVER_ERROR


# =============================================================================
# FRAMEWORK ERRORS
# =============================================================================

class WebHelperError(Exception):
    """Base class for framework misuse detected at setup time."""


class RouteConflictError(WebHelperError):
    """A (method, pattern) pair was registered twice."""

    def __init__(self, method: str, pattern: str):
        super().__init__(f"Route already registered: {method} {pattern}")
        self.method = method
        self.pattern = pattern


class ServerStateError(WebHelperError):
    """Operation not allowed in the server's current lifecycle state."""
