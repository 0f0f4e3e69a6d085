"""
Text-file page storage for the wiki.

Each page lives in its own file, <root>/<title>.txt, readable and writable
by the owner only (mode 0600).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union


logger = logging.getLogger(__name__)


PAGE_SUFFIX = ".txt"
PAGE_MODE = 0o600


class PageNotFound(LookupError):
    """No stored page has this title."""

    def __init__(self, title: str):
        super().__init__(f"page not found: {title}")
        self.title = title


@dataclass
class Page:
    """A wiki page: a title and its raw body bytes."""

    title: str
    body: bytes = b""


def validate_title(title: str) -> str:
    """
    Reject titles that would escape the storage directory.

    Raises:
        ValueError: Empty title, path separators, "." or "..".
    """
    if not title or title in (".", ".."):
        raise ValueError(f"invalid page title: {title!r}")
    if "/" in title or "\\" in title or os.sep in title or "\x00" in title:
        raise ValueError(f"invalid page title: {title!r}")
    return title


class PageStore:
    """
    Directory of <title>.txt files.

    Usage:
        store = PageStore("wikis")
        store.save_page(Page("Home", b"hello"))
        store.load_page("Home").body    # b"hello"
    """

    def __init__(self, root: Union[str, Path], create: bool = True):
        self.root = Path(root)
        if create:
            self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, title: str) -> Path:
        return self.root / (validate_title(title) + PAGE_SUFFIX)

    def load_page(self, title: str) -> Page:
        """
        Read a page.

        Raises:
            PageNotFound: No file for this title.
            ValueError: Invalid title.
            OSError: Any other read failure.
        """
        path = self.path_for(title)
        try:
            body = path.read_bytes()
        except FileNotFoundError:
            raise PageNotFound(title)
        return Page(title=title, body=body)

    def save_page(self, page: Page) -> None:
        """
        Write a page, replacing any previous content.

        New files are created with mode 0600.

        Raises:
            ValueError: Invalid title.
            OSError: Write failure.
        """
        path = self.path_for(page.title)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PAGE_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(page.body)
        logger.debug(f"Saved {path} ({len(page.body)} bytes)")

    def titles(self) -> List[str]:
        """Titles of all stored pages, sorted."""
        return sorted(p.stem for p in self.root.glob("*" + PAGE_SUFFIX) if p.is_file())
