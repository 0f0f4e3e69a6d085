"""
=============================================================================
REQUEST CONTEXT
=============================================================================

One RequestContext is created per inbound request and handed to every
middleware and to the route handler, in that order. It is never reused and
never stored on the server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     WHAT A CONTEXT WRAPS                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request     parsed HTTPRequest       ctx.method, ctx.path,        │
    │                                        ctx.form_value("body")       │
    │                                                                      │
    │   params      matched path parameters  ctx.path_value("title")     │
    │                                                                      │
    │   response    ResponseWriter (sink)    ctx.write(), ctx.redirect(),│
    │                                        ctx.write_error()            │
    │                                                                      │
    │   templates   shared TemplateSet       ctx.render("view", page)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Lookups never raise: a missing path parameter or form field is "". Writes
go straight to the sink; the server turns the sink into the final response
once the handler returns.

=============================================================================
"""

from typing import Any, Dict, Optional, Union
import logging

from .errors import RenderError
from .http.request import HTTPRequest
from .http.response import ResponseWriter, write_error, redirect
from .http.status_codes import HTTPStatus
from .templating import TemplateSet


logger = logging.getLogger(__name__)


class RequestContext:
    """
    Per-request facade over request, response sink and templates.

    Example handler:

        def view_handler(ctx: RequestContext):
            title = ctx.path_value("title")
            page = store.load_page(title)
            return ctx.render("view.html", page)
    """

    def __init__(
        self,
        request: HTTPRequest,
        writer: Optional[ResponseWriter] = None,
        templates: Optional[TemplateSet] = None,
        params: Optional[Dict[str, str]] = None,
    ):
        self._request = request
        self._writer = writer if writer is not None else ResponseWriter()
        self._templates = templates
        self._params: Dict[str, str] = dict(params or {})

    # =========================================================================
    # REQUEST SIDE
    # =========================================================================

    @property
    def request(self) -> HTTPRequest:
        return self._request

    @property
    def response(self) -> ResponseWriter:
        return self._writer

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def path(self) -> str:
        """Decoded request path, without query string."""
        return self._request.path

    @property
    def params(self) -> Dict[str, str]:
        return dict(self._params)

    def path_value(self, name: str) -> str:
        """
        Value of a {name} segment of the matched route pattern.

        Returns:
            The decoded value, or "" if the pattern has no such parameter.
        """
        return self._params.get(name, "")

    def form_value(self, key: str) -> str:
        """
        First form value for key: urlencoded body first, then query string.

        Returns:
            The value, or "" when the key is absent.
        """
        return self._request.get_form(key, "")

    def query_value(self, key: str) -> str:
        """First query-string value for key, or ""."""
        return self._request.get_query(key, "")

    def header(self, name: str) -> str:
        """Request header value (case-insensitive), or ""."""
        return self._request.get_header(name)

    # =========================================================================
    # RESPONSE SIDE
    # =========================================================================

    def render(self, template_name: str, data: Any = None) -> Optional[RenderError]:
        """
        Execute a template into the response.

        Args:
            template_name: Name in the server's TemplateSet.
            data: Template data (mapping, dataclass or object).

        Returns:
            None on success, otherwise a RenderError (status 500). Output
            produced before the failure stays in the response.
        """
        if self._templates is None:
            return RenderError(template_name, "no templates configured")
        try:
            self._templates.execute(template_name, self._writer, data)
        except Exception as e:
            logger.debug(f"Rendering {template_name} failed: {e}")
            failure = RenderError(template_name, f"template {template_name}: {e}")
            failure.__cause__ = e
            return failure
        return None

    def redirect(self, url: str) -> None:
        """Redirect with 302 Found."""
        self.redirect_with_status(url, HTTPStatus.FOUND)

    def redirect_with_status(self, url: str, status: int) -> None:
        """Redirect with an explicit 3xx status."""
        redirect(self._writer, self.method, self._request.raw_path, url, status)

    def write_error(self, message: str, status: int) -> None:
        """Write a plain-text error response ("message\\n")."""
        write_error(self._writer, message, status)

    def write(self, data: Union[bytes, str]) -> int:
        """Write raw body data (implicit 200 on first write)."""
        return self._writer.write(data)

    def write_string(self, text: str) -> int:
        """Write a string body, UTF-8 encoded."""
        return self._writer.write(text.encode("utf-8"))

    def set_header(self, name: str, value: str) -> None:
        self._writer.set_header(name, value)

    def __repr__(self) -> str:
        return f"RequestContext({self.method} {self.path}, params={self._params})"
