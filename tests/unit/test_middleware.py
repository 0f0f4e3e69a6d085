"""
Unit tests for the middleware chain and the bundled middlewares.
"""

import json
import logging

import pytest

from webhelper import AppError, RequestContext
from webhelper.errors import ServerStateError
from webhelper.middleware import MiddlewareChain, RequestLogger, deny_paths, invoke
from webhelper.middleware.logging import RequestLog

from conftest import make_request


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(make_request("GET", "/view/oops"))


class TestInvoke:
    """Normalizing handler outcomes."""

    def test_none_is_success(self, ctx):
        assert invoke(lambda c: None, ctx) is None

    def test_returned_error(self, ctx):
        err = AppError(400, "bad")
        assert invoke(lambda c: err, ctx) is err

    def test_raised_error(self, ctx):
        def boom(c):
            raise ValueError("boom")

        failure = invoke(boom, ctx)
        assert isinstance(failure, ValueError)
        assert str(failure) == "boom"

    def test_unexpected_return_value(self, ctx):
        failure = invoke(lambda c: "oops", ctx)
        assert isinstance(failure, TypeError)


class TestMiddlewareChain:
    """Tests for MiddlewareChain."""

    def test_runs_in_order(self, ctx):
        calls = []
        chain = MiddlewareChain()
        chain.add(lambda c: calls.append("first"))
        chain.add(lambda c: calls.append("second"))

        assert chain.run(ctx) is None
        assert calls == ["first", "second"]

    def test_stops_at_first_failure(self, ctx):
        """Middlewares after a failure never run."""
        calls = []
        err = AppError(401, "nope")

        def first(c):
            calls.append("first")

        def failing(c):
            calls.append("failing")
            return err

        def never(c):
            calls.append("never")

        chain = MiddlewareChain().add(first).add(failing).add(never)

        assert chain.run(ctx) is err
        assert calls == ["first", "failing"]

    def test_empty_chain(self, ctx):
        assert MiddlewareChain().run(ctx) is None

    def test_add_non_callable(self):
        with pytest.raises(TypeError):
            MiddlewareChain().add("not a function")

    def test_frozen_chain(self):
        chain = MiddlewareChain()
        chain.freeze()

        assert chain.frozen
        with pytest.raises(ServerStateError):
            chain.add(lambda c: None)

    def test_len_and_iter(self):
        first, second = (lambda c: None), (lambda c: None)
        chain = MiddlewareChain().add(first).add(second)

        assert len(chain) == 2
        assert list(chain) == [first, second]


class TestRequestLogger:
    """Tests for the request logging middleware."""

    def test_logs_method_and_path(self, ctx, caplog):
        caplog.set_level(logging.INFO, logger="webhelper.requests")

        assert RequestLogger()(ctx) is None
        assert "received [GET] at [/view/oops]" in caplog.messages

    def test_skip_paths(self, caplog):
        caplog.set_level(logging.INFO, logger="webhelper.requests")
        ctx = RequestContext(make_request("GET", "/favicon.ico"))

        RequestLogger(skip_paths=["/favicon.ico"])(ctx)

        assert not any("favicon" in m for m in caplog.messages)


class TestDenyPaths:
    """Tests for deny_paths()."""

    def test_denies_listed_path(self, ctx, caplog):
        caplog.set_level(logging.INFO, logger="webhelper.middleware.deny")
        deny = deny_paths("/view/oops", status=400, message="oops indeed (denied)")

        failure = deny(ctx)

        assert isinstance(failure, AppError)
        assert failure.status == 400
        assert failure.message == "oops indeed (denied)"
        assert "denying [GET] at [/view/oops]" in caplog.messages

    def test_allows_other_paths(self):
        deny = deny_paths("/view/oops")
        ctx = RequestContext(make_request("GET", "/view/fine"))
        assert deny(ctx) is None

    def test_default_status(self, ctx):
        failure = deny_paths("/view/oops")(ctx)
        assert failure.status == 403
        assert failure.message == "denied"


class TestRequestLog:
    """Access log entries."""

    @pytest.fixture
    def entry(self) -> RequestLog:
        return RequestLog(
            request_id="abcd1234",
            method="GET",
            path="/view/Home",
            query="draft=1",
            client_ip="127.0.0.1",
            user_agent="pytest",
            status_code=200,
            content_length=42,
            duration_ms=1.234,
            timestamp="01/Jan/2026:12:00:00 +0000",
        )

    def test_to_text(self, entry):
        assert entry.to_text() == (
            '127.0.0.1 - - [01/Jan/2026:12:00:00 +0000] '
            '"GET /view/Home?draft=1" 200 42 1.23ms'
        )

    def test_to_dict(self, entry):
        data = entry.to_dict()
        assert data["status_code"] == 200
        assert data["duration_ms"] == 1.23

    def test_emit_json(self, entry, caplog):
        caplog.set_level(logging.INFO, logger="webhelper.access")

        entry.emit("json")

        assert json.loads(caplog.messages[-1])["path"] == "/view/Home"
