"""
Deny middleware: refuse a fixed set of paths with an AppError.

Useful as a stand-in for authorization checks and to exercise the
short-circuit path of the chain:

    server.use(deny_paths("/view/oops", status=400, message="oops indeed (denied)"))

    GET /view/oops  →  400 "oops indeed (denied)", handler never runs
"""

import logging
from typing import Callable, Optional

from ..context import RequestContext
from ..errors import AppError
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


def deny_paths(
    *paths: str,
    status: int = HTTPStatus.FORBIDDEN,
    message: str = "denied",
) -> Callable[[RequestContext], Optional[AppError]]:
    """
    Build a middleware that fails for the given exact paths.

    Args:
        *paths: Decoded request paths to refuse.
        status: Status of the returned AppError.
        message: Error message (response body).

    Returns:
        Middleware callable.
    """
    denied = frozenset(paths)

    def deny(ctx: RequestContext) -> Optional[AppError]:
        if ctx.path in denied:
            logger.info(f"denying [{ctx.method}] at [{ctx.path}]")
            return AppError(status, message)
        return None

    return deny
