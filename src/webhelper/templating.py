"""
=============================================================================
TEMPLATE SET
=============================================================================

A named collection of Jinja2 templates shared (read-only) by all requests.

=============================================================================
WHERE TEMPLATES COME FROM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     TEMPLATE SOURCES                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   TemplateSet.from_directory("templates")                           │
    │      └── FileSystemLoader, every *.html parsed at startup           │
    │                                                                      │
    │   TemplateSet.from_package("wiki", "templates")                     │
    │      └── PackageLoader, templates shipped inside a package          │
    │                                                                      │
    │   TemplateSet.from_mapping({"view.html": "<h1>{{ title }}</h1>"})  │
    │      └── DictLoader, handy in tests                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Parsing everything up front means a syntax error in any template stops the
process at startup rather than on the first request that happens to use it.

=============================================================================
NAMES AND DATA
=============================================================================

Names resolve as given first, then with the ".html" suffix, so both
ctx.render("view", page) and ctx.render("view.html", page) work.

The data argument becomes the template context:

    dict / Mapping      used as-is           {{ title }}
    dataclass/object    public attributes    {{ title }}, {{ body|text }}
                        plus the object      {{ data.title }}
    None                empty context

Undefined variables raise instead of rendering as empty strings, and all
output is HTML-escaped.

=============================================================================
"""

from dataclasses import fields, is_dataclass
from typing import Any, Dict, Iterable, Mapping
import logging

from jinja2 import (
    DictLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    Template,
    select_autoescape,
)


logger = logging.getLogger(__name__)


def text_filter(value: Any) -> str:
    """Decode bytes as UTF-8 for display; None becomes an empty string."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def template_context(data: Any) -> Dict[str, Any]:
    """
    Build a Jinja2 context from whatever a handler passes to render().

    Args:
        data: Mapping, dataclass, plain object or None.

    Returns:
        Dict of template variables.
    """
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)

    context: Dict[str, Any] = {}
    if is_dataclass(data) and not isinstance(data, type):
        context.update({f.name: getattr(data, f.name) for f in fields(data)})
    elif hasattr(data, "__dict__"):
        context.update({k: v for k, v in vars(data).items() if not k.startswith("_")})
    context["data"] = data
    return context


class TemplateSet:
    """
    Read-only set of templates, built once at startup.

    Usage:
        templates = TemplateSet.from_directory("templates")
        templates.execute("view.html", writer, {"title": "Home", "body": b"hi"})
    """

    def __init__(self, loader, suffix: str = ".html", preload: bool = True):
        """
        Args:
            loader: Any jinja2 loader.
            suffix: Suffix tried when a name does not resolve as given.
            preload: Parse every template with this suffix immediately.

        Raises:
            jinja2.TemplateSyntaxError: If preload finds a broken template.
        """
        self.suffix = suffix
        self.env = Environment(
            loader=loader,
            autoescape=select_autoescape(default=True, default_for_string=True),
            undefined=StrictUndefined,
            auto_reload=False,
            keep_trailing_newline=True,
        )
        self.env.filters["text"] = text_filter

        self._names = sorted(
            name for name in self.env.list_templates()
            if not suffix or name.endswith(suffix)
        )
        if preload:
            for name in self._names:
                self.env.get_template(name)
            logger.debug(f"Loaded {len(self._names)} templates: {', '.join(self._names)}")

    # =========================================================================
    # CONSTRUCTORS
    # =========================================================================

    @classmethod
    def from_directory(cls, path: str, suffix: str = ".html") -> "TemplateSet":
        """Load all templates found under a directory."""
        return cls(FileSystemLoader(str(path)), suffix=suffix)

    @classmethod
    def from_package(cls, package: str, directory: str = "templates",
                     suffix: str = ".html") -> "TemplateSet":
        """Load templates shipped as package data."""
        return cls(PackageLoader(package, directory), suffix=suffix)

    @classmethod
    def from_mapping(cls, sources: Mapping[str, str], suffix: str = ".html") -> "TemplateSet":
        """Build from in-memory sources (name → template text)."""
        return cls(DictLoader(dict(sources)), suffix=suffix)

    # =========================================================================
    # LOOKUP AND EXECUTION
    # =========================================================================

    @property
    def names(self) -> Iterable[str]:
        return list(self._names)

    def get(self, name: str) -> Template:
        """
        Resolve a template name ("view" or "view.html").

        Raises:
            jinja2.TemplatesNotFound: If neither form exists.
        """
        candidates = [name]
        if self.suffix and not name.endswith(self.suffix):
            candidates.append(name + self.suffix)
        return self.env.select_template(candidates)

    def execute(self, name: str, sink, data: Any = None) -> None:
        """
        Render a template, streaming its output into sink.write().

        Output is written chunk by chunk, so a failure halfway through
        leaves the chunks produced so far in the sink.

        Args:
            name: Template name.
            sink: Object with a write(str | bytes) method.
            data: Template data (see template_context).

        Raises:
            jinja2.TemplateError: Lookup or evaluation failure.
        """
        template = self.get(name)
        for chunk in template.generate(template_context(data)):
            if chunk:
                sink.write(chunk)

    def render(self, name: str, data: Any = None) -> str:
        """Render a template to a string."""
        return self.get(name).render(template_context(data))
