"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /save/Front%20Page?draft=1 HTTP/1.1\r\n    ← request line    │
    │   Host: localhost:8080\r\n                        ← headers         │
    │   Content-Type: application/x-www-form-urlencoded\r\n               │
    │   Content-Length: 10\r\n                                            │
    │   \r\n                                            ← separator       │
    │   body=hello                                      ← body            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

From the request line we keep TWO views of the path:

    raw_path   "/save/Front%20Page"   still escaped, used for route matching
    path       "/save/Front Page"     decoded, what handlers see

Route matching runs on raw_path so that an escaped slash ("%2F") inside a
single segment cannot be mistaken for a segment boundary. Captured path
parameters are decoded after matching.

=============================================================================
FORM VALUES
=============================================================================

HTML forms post "application/x-www-form-urlencoded" bodies:

    body=hello+world&title=Home

HTTPRequest.form merges those values with the query string. Body values
come first, so get_form("x") prefers the posted value over "?x=...".

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List
from urllib.parse import parse_qs, urlsplit, unquote
import re


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code to answer with:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         HTTP method, upper case.
        path:           Decoded request path without query string.
        raw_path:       Escaped request path, as sent on the wire.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Header name (lower case) → value.
        query_params:   Query string as dict of lists.
        body:           Raw body bytes (exactly Content-Length).
        client_address: (ip, port) of the peer.
        raw:            The unparsed request bytes.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple = ("", 0)
    raw: bytes = b""
    raw_path: str = ""

    _form: Optional[Dict[str, List[str]]] = field(default=None, repr=False)

    def __post_init__(self):
        # Requests built by hand (tests) only pass a decoded path.
        if not self.raw_path:
            self.raw_path = self.path

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters, lower case ("text/html")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def form(self) -> Dict[str, List[str]]:
        """
        Form values from an urlencoded body merged with the query string.

        Parsed lazily on first access and cached. Body values are listed
        before query values for the same key.
        """
        if self._form is None:
            merged: Dict[str, List[str]] = {}
            if self.content_type == FORM_CONTENT_TYPE and self.body:
                text = self.body.decode("utf-8", errors="replace")
                for key, values in parse_qs(text, keep_blank_values=True).items():
                    merged.setdefault(key, []).extend(values)
            for key, values in self.query_params.items():
                merged.setdefault(key, []).extend(values)
            self._form = merged
        return self._form

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_form(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First form value (body first, then query), or default."""
        values = self.form.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check                  too large → 413
        2. Split at \\r\\n\\r\\n           missing → 400
        3. Parse request line          bad syntax → 400, method → 405,
                                       version → 505
        4. Parse headers               lower-cased names
        5. Cut body to Content-Length  short body → 400

    ==========================================================================
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, raw_path, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers.get('content-length')!r}"
            )
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            raw_path=raw_path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str):
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            Tuple of (method, raw_path, path, query_params, version)

        Raises:
            HTTPParseError: If line is malformed
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parts = urlsplit(uri)
        raw_path = parts.path or "/"
        if not raw_path.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {uri}")

        # Path traversal: reject ".." segments, allow names like "a..b".
        path = unquote(raw_path)
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        query_params = parse_qs(parts.query, keep_blank_values=True)
        return method, raw_path, path, query_params, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lower-cased names.

        Repeated headers are joined with ", ". Folded continuation lines
        (leading whitespace) extend the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # Lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse an HTTP request in one call."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
