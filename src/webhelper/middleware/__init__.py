"""
Middleware: the Handler contract, the short-circuit chain, and the
middlewares that ship with the framework.

    base.py      Handler, invoke, MiddlewareChain
    logging.py   RequestLogger, RequestLog
    deny.py      deny_paths
"""

from .base import Handler, MiddlewareChain, invoke, handler_name
from .logging import RequestLogger, RequestLog
from .deny import deny_paths

__all__ = [
    "Handler",
    "MiddlewareChain",
    "invoke",
    "handler_name",
    "RequestLogger",
    "RequestLog",
    "deny_paths",
]
