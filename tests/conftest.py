"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Optional

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from webhelper import Server, ServerConfig, TemplateSet
from webhelper.http import HTTPRequest, HTTPResponse, parse_request
from wiki import PageStore, build_server


WIKI_TEMPLATES = {
    "view.html": "<h1>{{ title }}</h1><div>{{ body|text }}</div>",
    "edit.html": (
        "<h1>Editing {{ title }}</h1>"
        '<textarea name="body">{{ body|text }}</textarea>'
    ),
}


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /view/FrontPage?draft=1&lang=en HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with an urlencoded form body."""
    body = b"body=hello+world&title=ignored"
    return (
        b"POST /save/FrontPage?title=from-query&extra=1 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        workers=2,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def templates() -> TemplateSet:
    """In-memory wiki templates."""
    return TemplateSet.from_mapping(WIKI_TEMPLATES)


@pytest.fixture
def store(tmp_path) -> PageStore:
    """Page store in a temporary directory."""
    return PageStore(tmp_path / "wikis")


@pytest.fixture
def wiki_server(config, store, templates) -> Server:
    """Wiki server (not running) with /view/oops denied."""
    return build_server(config, store, templates, deny=["/view/oops"])


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_request(method: str, target: str, body: bytes = b"",
                 content_type: Optional[str] = None) -> HTTPRequest:
    """Build a parsed request the way the transport would."""
    head = f"{method} {target} HTTP/1.1\r\nHost: test\r\n"
    if content_type:
        head += f"Content-Type: {content_type}\r\n"
    if body:
        head += f"Content-Length: {len(body)}\r\n"
    return parse_request(head.encode() + b"\r\n" + body, ("127.0.0.1", 50000))


def send(server: Server, method: str, target: str, body: bytes = b"",
         content_type: Optional[str] = None) -> HTTPResponse:
    """Run one request through server.handle()."""
    return server.handle(make_request(method, target, body, content_type))


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False  # not a test class

    def __init__(self, server: Server):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def live_wiki(wiki_server) -> Generator[TestServer, None, None]:
    """Running wiki server on an OS-assigned port."""
    test_srv = TestServer(wiki_server)
    test_srv.start()

    yield test_srv

    test_srv.stop()
