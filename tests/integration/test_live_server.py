"""
Integration tests against a running wiki server over real sockets.
"""

import http.client
import socket

import pytest

from webhelper.errors import ServerStateError


def request(live_wiki, method, path, body=None, headers=None):
    conn = http.client.HTTPConnection("127.0.0.1", live_wiki.port, timeout=5)
    try:
        conn.request(method, path, body=body, headers=headers or {})
        response = conn.getresponse()
        return response.status, dict(response.getheaders()), response.read()
    finally:
        conn.close()


class TestLiveWiki:
    """End-to-end wiki flows."""

    def test_edit_new_page(self, live_wiki):
        status, headers, body = request(live_wiki, "GET", "/edit/newpage")

        assert status == 200
        assert body == b'<h1>Editing newpage</h1><textarea name="body"></textarea>'
        assert headers["Connection"] == "close"
        assert headers["Content-Type"] == "text/html; charset=utf-8"

    def test_save_and_view(self, live_wiki):
        status, headers, _ = request(
            live_wiki, "POST", "/save/alpha", body="body=hello",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert status == 302
        assert headers["Location"] == "/view/alpha"

        status, _, body = request(live_wiki, "GET", "/view/alpha")
        assert status == 200
        assert b"hello" in body

    def test_denied_path(self, live_wiki):
        status, headers, body = request(live_wiki, "GET", "/view/oops")

        assert status == 400
        assert body == b"oops indeed (denied)\n"
        assert headers["X-Content-Type-Options"] == "nosniff"

    def test_not_found(self, live_wiki):
        status, _, body = request(live_wiki, "GET", "/nowhere")

        assert status == 404
        assert body == b"404 page not found\n"

    def test_head_has_no_body(self, live_wiki):
        status, headers, body = request(live_wiki, "HEAD", "/edit/newpage")

        assert status == 200
        assert int(headers["Content-Length"]) > 0
        assert body == b""

    def test_malformed_request(self, live_wiki):
        with socket.create_connection(("127.0.0.1", live_wiki.port), timeout=5) as sock:
            sock.sendall(b"BREW /pot HTTP/1.1\r\n\r\n")
            data = sock.recv(4096)

        assert data.startswith(b"HTTP/1.1 405 ")


class TestLifecycle:
    """Registration is closed once serving starts."""

    def test_use_after_run(self, live_wiki):
        with pytest.raises(ServerStateError):
            live_wiki.server.use(lambda ctx: None)

    def test_route_after_run(self, live_wiki):
        with pytest.raises(ServerStateError):
            live_wiki.server.get("/late", lambda ctx: None)

    def test_run_twice(self, live_wiki):
        assert live_wiki.server.is_running
        with pytest.raises(ServerStateError):
            live_wiki.server.run()
