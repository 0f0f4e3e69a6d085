"""
Unit tests for HTTP request parsing.
"""

import pytest

from webhelper.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/view/FrontPage"
        assert request.raw_path == "/view/FrontPage"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "text/html"
        assert request.get_header("USER-AGENT") == "pytest"

    def test_parse_query_params(self, sample_get_request: bytes):
        """Test query parameter parsing."""
        request = parse_request(sample_get_request)

        assert request.get_query("draft") == "1"
        assert request.get_query("lang") == "en"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_form_body(self, sample_post_request: bytes):
        """Test parsing POST request with an urlencoded body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.content_type == "application/x-www-form-urlencoded"
        assert request.body == b"body=hello+world&title=ignored"
        assert request.get_form("body") == "hello world"

    def test_form_prefers_body_over_query(self, sample_post_request: bytes):
        """Body values come before query values for the same key."""
        request = parse_request(sample_post_request)

        assert request.form["title"] == ["ignored", "from-query"]
        assert request.get_form("title") == "ignored"
        assert request.get_form("extra") == "1"
        assert request.get_form("absent") is None

    def test_form_ignores_non_form_body(self):
        """JSON bodies are not parsed as form data."""
        body = b'{"body": "x"}'
        data = (
            b"POST /save/x?body=q HTTP/1.1\r\n"
            b"Content-Type: application/json\r\n"
            + f"Content-Length: {len(body)}\r\n\r\n".encode()
            + body
        )
        request = parse_request(data)

        assert request.get_form("body") == "q"

    def test_escaped_path(self):
        """Path is decoded, raw_path keeps the escapes."""
        request = parse_request(b"GET /view/Front%20Page HTTP/1.1\r\n\r\n")

        assert request.path == "/view/Front Page"
        assert request.raw_path == "/view/Front%20Page"

    def test_dots_inside_segment_allowed(self):
        """Only whole '..' segments are rejected."""
        request = parse_request(b"GET /view/a..b HTTP/1.1\r\n\r\n")
        assert request.path == "/view/a..b"

    def test_header_folding_and_repeats(self):
        """Repeated headers are joined, folded lines continue."""
        data = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: text/plain\r\n"
            b"X-Long: first\r\n"
            b"  second\r\n"
            b"\r\n"
        )
        request = parse_request(data)

        assert request.headers["accept"] == "text/html, text/plain"
        assert request.headers["x-long"] == "first second"


class TestParseErrors:
    """Malformed requests raise HTTPParseError with a status code."""

    def test_invalid_request_line(self):
        with pytest.raises(HTTPParseError) as exc:
            parse_request(b"garbage\r\n\r\n")
        assert exc.value.status_code == 400

    def test_unknown_method(self):
        with pytest.raises(HTTPParseError) as exc:
            parse_request(b"BREW /pot HTTP/1.1\r\n\r\n")
        assert exc.value.status_code == 405

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc.value.status_code == 505

    def test_missing_header_terminator(self):
        with pytest.raises(HTTPParseError) as exc:
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")
        assert exc.value.status_code == 400

    def test_request_too_large(self):
        with pytest.raises(HTTPParseError) as exc:
            parse_request(b"GET / HTTP/1.1\r\n\r\n", max_size=10)
        assert exc.value.status_code == 413

    def test_path_traversal(self):
        with pytest.raises(HTTPParseError) as exc:
            parse_request(b"GET /view/../secret HTTP/1.1\r\n\r\n")
        assert exc.value.status_code == 400

    def test_incomplete_body(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"POST /x HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")

    def test_invalid_content_length(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"POST /x HTTP/1.1\r\nContent-Length: ten\r\n\r\n")


class TestHTTPRequest:
    """Tests for hand-built HTTPRequest objects."""

    def test_raw_path_defaults_to_path(self):
        request = HTTPRequest(method="GET", path="/view/x")
        assert request.raw_path == "/view/x"

    def test_content_length_invalid(self):
        request = HTTPRequest(method="GET", path="/", headers={"content-length": "x"})
        assert request.content_length == 0
