"""
=============================================================================
HTTP RESPONSE SINK AND SERIALIZATION
=============================================================================

Handlers do not return responses. They WRITE into a ResponseWriter that
belongs to the current request, the same way a template streams its output:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      RESPONSE LIFECYCLE                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   handler ──write()──►  ResponseWriter  ──to_response()──►          │
    │                          │ status (locked on first write)           │
    │                          │ headers                                   │
    │                          │ body buffer                               │
    │                                                                      │
    │   HTTPResponse ──to_bytes()──►  b"HTTP/1.1 200 OK\r\n..."  ──►  socket│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STATUS LOCKING
=============================================================================

The status line is committed the first time something is written:

    writer.write(b"hello")        → implicit 200, header committed
    writer.write_header(404)      → too late, logged and ignored

Header changes after the commit are ignored as well. This mirrors a
streaming server, where headers have already left the machine once the body
starts. It matters for failures that happen halfway through a template: the
partial output stays, and the error text is appended to it.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import Optional, Dict, Union
from urllib.parse import quote, urljoin, urlsplit
import logging

from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)


@dataclass
class HTTPResponse:
    """
    A complete HTTP response ready to be serialized.

        HTTPResponse(status=200, headers={...}, body=b"...")
            └── to_bytes() ──► b"HTTP/1.1 200 OK\\r\\n...\\r\\n\\r\\n..."
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE"""
        return f"{self.version} {int(self.status)} {reason_phrase(int(self.status))}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "webhelper/1.0", include_body: bool = True) -> bytes:
        """
        Serialize the response to bytes for sending over a socket.

        Adds Content-Length, Date and Server when absent.

        Args:
            server_name: Value for the Server header.
            include_body: False for HEAD requests (headers are unchanged).

        Returns:
            Complete HTTP response as bytes.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {header_value(value)}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + (self.body if include_body else b"")


def canonical_header(name: str) -> str:
    """"content-type" → "Content-Type"."""
    return "-".join(part.capitalize() for part in name.split("-"))


def header_value(value) -> str:
    """Header value safe to put on one line: CR and LF become spaces."""
    return str(value).replace("\r", " ").replace("\n", " ")


def hex_escape_non_ascii(url: str) -> str:
    """
    Percent-encode every non-ASCII character of a URL.

        "/view/日本"  →  "/view/%E6%97%A5%E6%9C%AC"

    ASCII characters, including existing %XX escapes, are left alone.
    """
    if url.isascii():
        return url
    return "".join(ch if ch.isascii() else quote(ch, safe="") for ch in url)


class ResponseWriter:
    """
    Per-request response sink.

    Usage:
        writer = ResponseWriter()
        writer.set_header("Content-Type", "text/html; charset=utf-8")
        writer.write(b"<h1>Home</h1>")
        response = writer.to_response()   # status 200

    Anything with a write(data) method can receive template output; this
    class is what the server hands to each RequestContext.
    """

    def __init__(self):
        self._headers: Dict[str, str] = {}
        self._status: Optional[int] = None
        self._body = bytearray()

    # =========================================================================
    # HEADERS AND STATUS
    # =========================================================================

    @property
    def headers(self) -> Dict[str, str]:
        """Headers as they will be sent (a copy once committed)."""
        return dict(self._headers)

    @property
    def status(self) -> Optional[int]:
        """Committed status, or None while nothing has been written."""
        return self._status

    @property
    def committed(self) -> bool:
        return self._status is not None

    def set_header(self, name: str, value: str) -> None:
        if self.committed:
            logger.debug(f"Ignoring header {name} set after response was committed")
            return
        self._headers[canonical_header(name)] = value

    def get_header(self, name: str, default: str = "") -> str:
        return self._headers.get(canonical_header(name), default)

    def del_header(self, name: str) -> None:
        if not self.committed:
            self._headers.pop(canonical_header(name), None)

    def write_header(self, status: int) -> None:
        """
        Commit the status line.

        Only the first call counts; later calls are logged and ignored.
        """
        if self.committed:
            logger.warning(
                f"Superfluous write_header({status}), status already {self._status}"
            )
            return
        self._status = int(status)

    # =========================================================================
    # BODY
    # =========================================================================

    def write(self, data: Union[bytes, str]) -> int:
        """
        Append body bytes, committing an implicit 200 on first write.

        When no Content-Type was set, one is chosen by sniffing the first
        chunk: markup gets text/html, everything else text/plain.

        Returns:
            Number of bytes written.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not self.committed:
            if "Content-Type" not in self._headers and data:
                self._headers["Content-Type"] = sniff_content_type(data)
            self.write_header(HTTPStatus.OK)
        self._body.extend(data)
        return len(data)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def to_response(self) -> HTTPResponse:
        """Freeze the sink into an HTTPResponse (200 if nothing was written)."""
        return HTTPResponse(
            status=self._status if self._status is not None else HTTPStatus.OK,
            headers=dict(self._headers),
            body=bytes(self._body),
        )


# =============================================================================
# HELPERS
# =============================================================================

def sniff_content_type(data: bytes) -> str:
    """Tiny content sniffer: leading markup → HTML, otherwise plain text."""
    head = data[:512].lstrip().lower()
    if head.startswith((b"<!doctype html", b"<html", b"<h", b"<p", b"<div",
                        b"<a ", b"<body", b"<head", b"<form", b"<table")):
        return "text/html; charset=utf-8"
    return "text/plain; charset=utf-8"


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Example: Thu, 01 Jan 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def write_error(writer: ResponseWriter, message: str, status: int) -> None:
    """
    Write a plain-text error response.

    Body is the message plus a newline. Any Content-Length set earlier is
    dropped, and browsers are told not to sniff the text as HTML.
    """
    writer.del_header("Content-Length")
    writer.set_header("Content-Type", "text/plain; charset=utf-8")
    writer.set_header("X-Content-Type-Options", "nosniff")
    writer.write_header(status)
    writer.write(message + "\n")


def redirect(writer: ResponseWriter, method: str, request_path: str,
             url: str, status: int = HTTPStatus.FOUND) -> None:
    """
    Send a redirect to url.

    Relative targets ("edit/x", "../y") are resolved against the request
    path; absolute paths and full URLs are used as given. GET requests also
    get a tiny HTML body linking to the target.
    """
    url = hex_escape_non_ascii(url)
    if not urlsplit(url).scheme and not url.startswith("/"):
        url = urljoin(request_path, url)

    had_content_type = bool(writer.get_header("Content-Type"))
    writer.set_header("Location", url)
    if not had_content_type and method in ("GET", "HEAD"):
        writer.set_header("Content-Type", "text/html; charset=utf-8")
    writer.write_header(status)

    if not had_content_type and method == "GET":
        writer.write(f'<a href="{escape(url)}">{reason_phrase(int(status))}</a>.\n')
