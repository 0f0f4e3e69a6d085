"""
gowiki - a text-file wiki built on webhelper.

    storage.py   Page, PageStore (one <title>.txt file per page)
    app.py       WikiApp handlers, build_server()
    __main__.py  command line entry point (python -m wiki)
"""

from .storage import Page, PageNotFound, PageStore
from .app import WikiApp, build_server

__all__ = ["Page", "PageNotFound", "PageStore", "WikiApp", "build_server"]
