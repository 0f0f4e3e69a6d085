"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps (method, path pattern) pairs to handlers and extracts path parameters.

=============================================================================
PATTERN SYNTAX
=============================================================================

1. LITERAL SEGMENTS: exact match
   Pattern: /health
   Matches: /health
   Doesn't match: /health/, /healthz

2. NAMED SEGMENT {name}: exactly one non-empty path segment
   Pattern: /view/{title}
   Matches: /view/FrontPage → {"title": "FrontPage"}
   Doesn't match: /view/, /view/a/b

3. TAIL SEGMENT {name...}: the rest of the path, slashes included
   Pattern: /files/{path...}
   Matches: /files/css/site.css → {"path": "css/site.css"}
   Must be the LAST segment in the pattern.

=============================================================================
PATTERN COMPILATION
=============================================================================

    Pattern:  /view/{title}
                │      │
                ▼      ▼
    Regex:    ^/view/(?P<title>[^/]+)$

Matching runs on the ESCAPED request path. Captured values are decoded
afterwards, so "/view/a%2Fb" yields {"title": "a/b"} while "/view/a/b"
does not match at all.

=============================================================================
PRECEDENCE AND CONFLICTS
=============================================================================

When several patterns match a path, the most specific one wins: more
literal segments first, then fixed-length over tail patterns. Two patterns
with the same shape and method (for example /view/{a} and /view/{b}) can
never be told apart, so registering the second one raises
RouteConflictError immediately instead of silently shadowing the first.

A GET route also answers HEAD requests.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List, Tuple
from urllib.parse import unquote
import logging
import re

from ..errors import RouteConflictError


logger = logging.getLogger(__name__)


PARAM_SEGMENT = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)(\.\.\.)?\}$")


@dataclass
class Route:
    """
    A registered route.

        Route(
            method="GET",
            pattern="/view/{title}",
            handler=view_handler,
            _regex=<compiled ^/view/(?P<title>[^/]+)$>,
            _param_names=["title"],
        )
    """

    method: str
    pattern: str
    handler: Callable[..., Any]

    _regex: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)
    _shape: str = field(default="", repr=False)
    _specificity: Tuple[int, int, int] = field(default=(0, 0, 0), repr=False)

    @property
    def param_names(self) -> List[str]:
        return list(self._param_names)

    def serves(self, method: str) -> bool:
        """True if this route answers the given request method."""
        return self.method == method or (method == "HEAD" and self.method == "GET")


@dataclass
class RouteMatch:
    """
    Result of a successful match.

    Example:
        Pattern: /view/{title}
        Path:    /view/Front%20Page
        Result:  RouteMatch(route=<Route>, params={"title": "Front Page"})
    """

    route: Route
    params: Dict[str, str]


class Router:
    """
    Route table with {name} path parameters.

    Usage:
        router = Router()
        router.add_route("GET", "/view/{title}", view_handler)

        match = router.match("GET", "/view/FrontPage")
        match.route.handler   # view_handler
        match.params          # {"title": "FrontPage"}

        router.allowed_methods("/view/FrontPage")   # ["GET", "HEAD"]
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._shapes: Dict[Tuple[str, str], Route] = {}

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(self, method: str, pattern: str, handler: Callable[..., Any]) -> Route:
        """
        Register a handler for (method, pattern).

        Args:
            method: HTTP method ("GET", "POST", ...).
            pattern: Path pattern such as "/view/{title}".
            handler: Callable invoked for matching requests.

        Returns:
            The registered Route.

        Raises:
            ValueError: If the pattern is malformed.
            RouteConflictError: If an equivalent (method, pattern) exists.
        """
        method = method.upper()
        regex, param_names, shape, specificity = self._compile_pattern(pattern)

        key = (method, shape)
        if key in self._shapes:
            raise RouteConflictError(method, pattern)

        route = Route(
            method=method,
            pattern=pattern,
            handler=handler,
            _regex=regex,
            _param_names=param_names,
            _shape=shape,
            _specificity=specificity,
        )
        self._routes.append(route)
        self._shapes[key] = route
        logger.debug(f"Registered route {method} {pattern}")
        return route

    def _compile_pattern(self, pattern: str):
        """
        Compile a path pattern into a regex.

        Input:  "/view/{title}"
        Split:  ["", "view", "{title}"]
        Output: ^/view/(?P<title>[^/]+)$

        Returns:
            Tuple of (regex, param names, shape key, specificity)

        Raises:
            ValueError: On a malformed pattern.
        """
        if not pattern.startswith("/"):
            raise ValueError(f"Route pattern must start with '/': {pattern!r}")

        segments = pattern.split("/")[1:]
        param_names: List[str] = []
        regex_parts: List[str] = []
        shape_parts: List[str] = []
        literal_count = 0
        has_tail = False

        for index, segment in enumerate(segments):
            param = PARAM_SEGMENT.match(segment)
            if param:
                name, tail = param.group(1), param.group(2)
                if name in param_names:
                    raise ValueError(f"Duplicate parameter {name!r} in {pattern!r}")
                param_names.append(name)
                if tail:
                    if index != len(segments) - 1:
                        raise ValueError(
                            f"Tail parameter {{{name}...}} must be last in {pattern!r}"
                        )
                    has_tail = True
                    regex_parts.append(f"(?P<{name}>.*)")
                    shape_parts.append("{...}")
                else:
                    regex_parts.append(f"(?P<{name}>[^/]+)")
                    shape_parts.append("{}")
            elif "{" in segment or "}" in segment:
                raise ValueError(f"Invalid segment {segment!r} in {pattern!r}")
            else:
                literal_count += 1
                regex_parts.append(re.escape(segment))
                shape_parts.append(segment)

        regex = re.compile("^/" + "/".join(regex_parts) + "$")
        shape = "/" + "/".join(shape_parts)
        specificity = (literal_count, 0 if has_tail else 1, len(segments))
        return regex, param_names, shape, specificity

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, raw_path: str) -> Optional[RouteMatch]:
        """
        Find the route for a request.

        Args:
            method: Request method.
            raw_path: Escaped request path (no query string).

        Returns:
            RouteMatch with decoded params, or None.
        """
        method = method.upper()
        best: Optional[Route] = None
        best_match = None

        for route in self._routes:
            if not route.serves(method):
                continue
            found = route._regex.match(raw_path)
            if found and (best is None or route._specificity > best._specificity):
                best, best_match = route, found

        if best is None:
            return None

        params = {name: unquote(value) for name, value in best_match.groupdict().items()}
        return RouteMatch(route=best, params=params)

    def allowed_methods(self, raw_path: str) -> List[str]:
        """
        Methods registered for any pattern matching this path.

        Used for the Allow header of 405 responses. Empty when the path
        matches no pattern at all (404).
        """
        methods = set()
        for route in self._routes:
            if route._regex.match(raw_path):
                methods.add(route.method)
                if route.method == "GET":
                    methods.add("HEAD")
        return sorted(methods)
