"""
=============================================================================
WIKI APPLICATION
=============================================================================

A tiny wiki on top of webhelper: view, edit and save text pages.

=============================================================================
ROUTES
=============================================================================

    GET  /view/{title}   render view.html; missing page → 302 /edit/{title}
    GET  /view2?title=   same, title taken from the query string
    GET  /edit/{title}   render edit.html (empty body for a new page)
    POST /save/{title}   store form field "body", 302 → /view/{title}

=============================================================================
MIDDLEWARES
=============================================================================

    RequestLogger        "received [GET] at [/view/Home]"
    deny_paths(...)      optional; the CLI's --deny flag, e.g. /view/oops

=============================================================================
"""

import logging
from typing import Iterable, Optional
from urllib.parse import quote

from webhelper import (
    AppError,
    RequestContext,
    Server,
    ServerConfig,
    TemplateSet,
    deny_paths,
)
from webhelper.http import HTTPStatus
from webhelper.middleware import RequestLogger

from .storage import Page, PageNotFound, PageStore


logger = logging.getLogger(__name__)


DENY_MESSAGE = "oops indeed (denied)"


class WikiApp:
    """
    The wiki's route handlers, bound to one PageStore.

    Each method follows the handler contract: take a RequestContext,
    return None or a failure.
    """

    def __init__(self, store: PageStore):
        self.store = store

    def view(self, ctx: RequestContext) -> Optional[Exception]:
        return self._show(ctx, ctx.path_value("title"))

    def view_query(self, ctx: RequestContext) -> Optional[Exception]:
        title = ctx.query_value("title")
        if not title:
            return AppError(HTTPStatus.BAD_REQUEST, "missing 'title' parameter")
        return self._show(ctx, title)

    def _show(self, ctx: RequestContext, title: str) -> Optional[Exception]:
        try:
            page = self.store.load_page(title)
        except PageNotFound:
            ctx.redirect("/edit/" + quote(title, safe=""))
            return None
        except ValueError as e:
            return AppError(HTTPStatus.BAD_REQUEST, str(e))
        return ctx.render("view.html", page)

    def edit(self, ctx: RequestContext) -> Optional[Exception]:
        title = ctx.path_value("title")
        try:
            page = self.store.load_page(title)
        except PageNotFound:
            page = Page(title=title)
        except ValueError as e:
            return AppError(HTTPStatus.BAD_REQUEST, str(e))
        return ctx.render("edit.html", page)

    def save(self, ctx: RequestContext) -> Optional[Exception]:
        title = ctx.path_value("title")
        page = Page(title=title, body=ctx.form_value("body").encode("utf-8"))
        try:
            self.store.save_page(page)
        except ValueError as e:
            return AppError(HTTPStatus.BAD_REQUEST, str(e))
        except OSError as e:
            return AppError(HTTPStatus.INTERNAL_SERVER_ERROR, str(e))
        ctx.redirect("/view/" + quote(title, safe=""))
        return None


def build_server(
    config: ServerConfig,
    store: PageStore,
    templates: TemplateSet,
    deny: Iterable[str] = (),
) -> Server:
    """
    Wire the wiki into a Server.

    Args:
        config: Server configuration.
        store: Page storage.
        templates: Must provide view.html and edit.html.
        deny: Paths answered with 400 "oops indeed (denied)".

    Returns:
        A Server ready to run().
    """
    app = WikiApp(store)
    server = Server(config, templates)

    server.use(RequestLogger())
    deny = list(deny)
    if deny:
        server.use(deny_paths(*deny, status=HTTPStatus.BAD_REQUEST, message=DENY_MESSAGE))

    server.get("/view/{title}", app.view)
    server.get("/view2", app.view_query)
    server.get("/edit/{title}", app.edit)
    server.post("/save/{title}", app.save)
    return server
