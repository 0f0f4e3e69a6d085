"""
HTTP protocol layer: request parsing, response sink, status codes, routes.

    request.py       HTTPRequest, RequestParser, HTTPParseError
    response.py      ResponseWriter, HTTPResponse, write_error, redirect
    status_codes.py  HTTPStatus, reason_phrase
    router.py        Router, Route, RouteMatch
"""

from .status_codes import HTTPStatus, reason_phrase
from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseWriter,
    format_http_date,
    write_error,
    redirect,
)
from .router import Router, Route, RouteMatch

__all__ = [
    "HTTPStatus",
    "reason_phrase",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "HTTPResponse",
    "ResponseWriter",
    "format_http_date",
    "write_error",
    "redirect",
    "Router",
    "Route",
    "RouteMatch",
]
