"""
=============================================================================
HANDLER CONTRACT AND MIDDLEWARE CHAIN
=============================================================================

Middlewares and route handlers share ONE signature:

    Handler = Callable[[RequestContext], Optional[Exception]]

A handler reports failure by returning an exception (typically an
AppError). Raising one works too; it is treated exactly like returning it.

=============================================================================
SHORT-CIRCUIT CHAIN
=============================================================================

Unlike an onion pipeline, middlewares do not wrap each other. They run one
after the other, and the first failure stops everything behind it:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CHAIN EXECUTION                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ctx ──► mw1 ──ok──► mw2 ──ok──► mw3 ──ok──► handler ──ok──► done │
    │            │           │           │             │                  │
    │          fail        fail        fail          fail                 │
    │            │           │           │             │                  │
    │            └───────────┴─────┬─────┴─────────────┘                  │
    │                              ▼                                       │
    │                   one error response                                 │
    │              status_of(failure), str(failure)                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A middleware that wants to deny a request simply returns an error:

    def deny_oops(ctx):
        if ctx.path == "/view/oops":
            return AppError(400, "oops indeed (denied)")
        return None

=============================================================================
"""

from typing import Callable, Iterator, List, Optional
import logging

from ..context import RequestContext
from ..errors import ServerStateError


logger = logging.getLogger(__name__)


Handler = Callable[[RequestContext], Optional[Exception]]


def handler_name(handler: Handler) -> str:
    """Readable name for logs: function name or class name."""
    return getattr(handler, "__name__", None) or type(handler).__name__


def invoke(handler: Handler, ctx: RequestContext) -> Optional[Exception]:
    """
    Call one handler and normalize its outcome.

    Returns:
        None on success, otherwise the failure. A raised exception becomes
        the failure. A return value that is neither None nor an exception
        is a programming error and is reported as a TypeError.
    """
    try:
        result = handler(ctx)
    except Exception as e:
        return e

    if result is None or isinstance(result, Exception):
        return result
    return TypeError(
        f"Handler {handler_name(handler)} returned {type(result).__name__}; "
        f"expected None or an exception"
    )


class MiddlewareChain:
    """
    Ordered, append-only list of middlewares.

    Usage:
        chain = MiddlewareChain()
        chain.add(log_requests).add(deny_oops)

        failure = chain.run(ctx)   # None if every middleware succeeded

    The chain is frozen when the server starts serving; add() afterwards
    raises ServerStateError.
    """

    def __init__(self):
        self._middleware: List[Handler] = []
        self._frozen = False

    def add(self, middleware: Handler) -> "MiddlewareChain":
        """
        Append a middleware. Runs after everything added before it.

        Raises:
            TypeError: If middleware is not callable.
            ServerStateError: If the chain is frozen.
        """
        if not callable(middleware):
            raise TypeError(f"Middleware must be callable, got {type(middleware).__name__}")
        if self._frozen:
            raise ServerStateError("Cannot add middleware after the server has started")
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {handler_name(middleware)}")
        return self

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def run(self, ctx: RequestContext) -> Optional[Exception]:
        """
        Run middlewares in registration order, stopping at the first failure.

        Returns:
            The first failure, or None if all succeeded.
        """
        for middleware in self._middleware:
            failure = invoke(middleware, ctx)
            if failure is not None:
                logger.debug(f"Middleware {handler_name(middleware)} stopped the chain: {failure}")
                return failure
        return None

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Handler]:
        return iter(self._middleware)
