"""
=============================================================================
REQUEST LOGGING
=============================================================================

Two pieces:

    RequestLogger   middleware, logs "received [GET] at [/view/Home]"
                    BEFORE the request is dispatched
    RequestLog      structured access-log entry the server emits AFTER
                    the response is built (status, size, duration)

=============================================================================
LOGGER NAMES
=============================================================================

Both use namespaced loggers so they can be tuned independently:

    logging.getLogger("webhelper.requests").setLevel(logging.WARNING)
    logging.getLogger("webhelper.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..context import RequestContext


logger = logging.getLogger("webhelper.requests")
access_logger = logging.getLogger("webhelper.access")


@dataclass
class RequestLog:
    """
    Structured access-log entry for one request.

    FIELDS
        request_id:     Short unique id for correlating log lines
        method, path:   What was asked
        query:          Raw query string
        client_ip:      Peer address
        user_agent:     Client software
        status_code:    Response status
        content_length: Response body size in bytes
        duration_ms:    Time spent in the framework
        timestamp:      When the request was processed
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style access line."""
        path = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )

    def emit(self, log_format: str = "text", level: int = logging.INFO) -> None:
        """Write this entry to the access logger."""
        if log_format == "json":
            access_logger.log(level, json.dumps(self.to_dict()))
        else:
            access_logger.log(level, self.to_text())


def access_timestamp() -> str:
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")


class RequestLogger:
    """
    Middleware that logs every request before it is dispatched.

    Usage:
        server.use(RequestLogger())
        server.use(RequestLogger(skip_paths=["/favicon.ico"]))

    Always succeeds; it never stops the chain.
    """

    def __init__(
        self,
        log_level: int = logging.INFO,
        skip_paths: Optional[list] = None,
    ):
        """
        Args:
            log_level: Level for the "received" lines.
            skip_paths: Exact paths not worth logging.
        """
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, ctx: RequestContext) -> None:
        if ctx.path in self.skip_paths:
            return None
        logger.log(self.log_level, f"received [{ctx.method}] at [{ctx.path}]")
        return None
