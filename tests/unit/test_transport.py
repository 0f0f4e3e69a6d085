"""
Unit tests for the socket transport pieces: Connection, ThreadPool and
SocketServer.
"""

import socket
import threading

import pytest

from webhelper import ServerConfig
from webhelper.core import Connection, ConnectionState, SocketServer, ThreadPool
from webhelper.http import HTTPParseError


@pytest.fixture
def socket_pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for sock in (server_side, client_side):
        sock.close()


class TestConnection:
    """Reading one request from a socket."""

    def test_reads_headers_and_body(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(server_side, ("127.0.0.1", 5000), timeout=2)

        client_side.sendall(b"POST /save/a HTTP/1.1\r\nContent-Length: 10\r\n\r\nbody=")
        client_side.sendall(b"hello")

        assert conn.read_request() == (
            b"POST /save/a HTTP/1.1\r\nContent-Length: 10\r\n\r\nbody=hello"
        )
        assert conn.state == ConnectionState.PROCESSING

    def test_client_closed_without_data(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(server_side, ("127.0.0.1", 5000), timeout=2)

        client_side.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None

    def test_request_too_large(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(server_side, ("127.0.0.1", 5000), timeout=2, max_request_size=16)

        client_side.sendall(b"GET /" + b"x" * 64 + b" HTTP/1.1\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc:
            conn.read_request()
        assert exc.value.status_code == 413

    def test_declared_length_too_large(self, socket_pair):
        """An oversized Content-Length is refused before the body arrives."""
        server_side, client_side = socket_pair
        conn = Connection(server_side, ("127.0.0.1", 5000), timeout=2, max_request_size=1024)

        client_side.sendall(b"POST /save/a HTTP/1.1\r\nContent-Length: 1000000\r\n\r\n")

        with pytest.raises(HTTPParseError) as exc:
            conn.read_request()
        assert exc.value.status_code == 413

    def test_timeout(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(server_side, ("127.0.0.1", 5000), timeout=0.1)

        client_side.sendall(b"GET / HTTP/1.1\r\n")

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_send_and_close(self, socket_pair):
        server_side, client_side = socket_pair
        conn = Connection(server_side, ("127.0.0.1", 5000), timeout=2)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED
        assert client_side.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_runs_tasks(self):
        pool = ThreadPool(workers=2, queue_size=4)
        pool.start()
        done = threading.Event()
        results = []

        def task(value):
            results.append(value)
            done.set()

        assert pool.submit(task, 42) is True
        assert done.wait(5)
        pool.shutdown(wait=True, timeout=5)

        assert results == [42]
        assert pool.stats["completed"] == 1
        assert not pool.is_running

    def test_failing_task_does_not_kill_worker(self):
        pool = ThreadPool(workers=1, queue_size=4)
        pool.start()
        done = threading.Event()

        def broken():
            raise RuntimeError("task failed")

        pool.submit(broken)
        pool.submit(done.set)
        assert done.wait(5)
        pool.shutdown(wait=True, timeout=5)

        assert pool.stats["failed"] == 1
        assert pool.stats["completed"] == 1

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool(workers=1).submit(print)

    def test_full_queue_rejects(self):
        pool = ThreadPool(workers=1, queue_size=1)
        pool.start()
        started, release = threading.Event(), threading.Event()

        def blocker():
            started.set()
            release.wait(5)

        assert pool.submit(blocker)
        assert started.wait(5)
        assert pool.submit(release.wait, 5)
        assert pool.submit(print) is False

        release.set()
        pool.shutdown(wait=True, timeout=5)


class TestSocketServer:
    """Tests for the accept loop lifecycle."""

    def test_shutdown_before_serving_is_kept(self):
        server = SocketServer(ServerConfig(host="127.0.0.1", port=0))
        server.bind()
        server.shutdown()

        thread = threading.Thread(target=server.serve_forever, args=(lambda conn: None,))
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert not server.wait_until_ready(0)

    def test_bound_port_reported(self):
        server = SocketServer(ServerConfig(host="127.0.0.1", port=0))
        host, port = server.bind()
        try:
            assert host == "127.0.0.1"
            assert port != 0
            assert server.address == (host, port)
        finally:
            server.shutdown()
            server.serve_forever(lambda conn: None)
