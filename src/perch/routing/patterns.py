"""Route-map key matching.

Route-map keys are strings such as ``"/docs"``, ``"/users/{id:int}"``,
``"/files/{rest:path}"`` or ``"*"``, or ``RouteFilter`` objects. Each key
compiles once into a ``RouteKey`` that matches the leading segments of a
route and reports how many it consumed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from perch.errors import ConfigurationError
from perch.routing.params import CONVERTERS, convert_param
from perch.routing.route import Route

if TYPE_CHECKING:
    from perch.context import Context

WILDCARD = "*"


@dataclass(frozen=True, slots=True)
class KeySegment:
    """One segment of a compiled route-map key."""

    value: str
    is_param: bool = False
    param_name: str = ""
    param_type: str = "str"
    regex: re.Pattern[str] | None = None


@dataclass(frozen=True, slots=True)
class KeyMatch:
    """Result of matching a key against the start of a route."""

    consumed: int
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RouteFilter:
    """A route-map key that matches by predicate instead of by path.

    The predicate receives the resolution context and consumes no
    segments::

        admin_only = RouteFilter("admin", lambda ctx: ctx.shared.get("admin", False))
        entrypoint = {admin_only: admin_page, "*": public_page}
    """

    name: str
    predicate: Callable[[Context], bool]

    def __repr__(self) -> str:
        return f"RouteFilter({self.name!r})"


@dataclass(frozen=True, slots=True)
class RouteKey:
    """A compiled string key."""

    source: str
    segments: tuple[KeySegment, ...]
    wildcard: bool = False

    @property
    def is_literal(self) -> bool:
        return not self.wildcard and not any(s.is_param for s in self.segments)

    @property
    def is_root(self) -> bool:
        return not self.wildcard and not self.segments

    def match_exact(self, route: Route) -> KeyMatch | None:
        """Literal keys only: match iff the key equals the whole route."""
        if self.is_literal and tuple(s.value for s in self.segments) == route.segments:
            return KeyMatch(consumed=len(route.segments))
        return None

    def match_prefix(self, route: Route) -> KeyMatch | None:
        """Match the key against the leading segments of *route*.

        The root key only matches an empty route; ``*`` matches anything
        and consumes nothing.
        """
        if self.wildcard:
            return KeyMatch(consumed=0)
        if self.is_root:
            return KeyMatch(consumed=0) if route.is_root else None

        params: dict[str, Any] = {}
        remaining = route.segments
        for index, segment in enumerate(self.segments):
            if segment.param_type == "path" and segment.is_param:
                rest = remaining[index:]
                if not rest:
                    return None
                params[segment.param_name] = "/".join(rest)
                return KeyMatch(consumed=len(route.segments), params=params)
            if index >= len(remaining):
                return None
            part = remaining[index]
            if not segment.is_param:
                if part != segment.value:
                    return None
                continue
            assert segment.regex is not None
            if not segment.regex.fullmatch(part):
                return None
            params[segment.param_name] = convert_param(part, segment.param_type)
        return KeyMatch(consumed=len(self.segments), params=params)


@lru_cache(maxsize=1024)
def compile_key(key: str) -> RouteKey:
    """Compile a route-map key string.

    Examples::

        "/"                -> root key, matches only an empty remainder
        "/users/{id:int}"  -> literal "users" then an int parameter
        "/files/{p:path}"  -> literal "files" then the rest of the route
        "*"                -> matches any remainder without consuming it

    Raises ``ConfigurationError`` for unknown converters or a ``path``
    parameter that is not the last segment.
    """
    if key.strip() == WILDCARD:
        return RouteKey(source=key, segments=(), wildcard=True)

    parts = [part for part in key.split("?", 1)[0].strip("/").split("/") if part]
    segments: list[KeySegment] = []
    for index, part in enumerate(parts):
        if part.startswith("{") and part.endswith("}"):
            inner = part[1:-1]
            name, _, param_type = inner.partition(":")
            param_type = param_type or "str"
            if param_type not in CONVERTERS:
                msg = f"Unknown converter {param_type!r} in route key {key!r}"
                raise ConfigurationError(msg)
            if param_type == "path" and index != len(parts) - 1:
                msg = f"A path parameter must be the last segment of route key {key!r}"
                raise ConfigurationError(msg)
            pattern, _ = CONVERTERS[param_type]
            segments.append(
                KeySegment(
                    value=part,
                    is_param=True,
                    param_name=name,
                    param_type=param_type,
                    regex=re.compile(pattern),
                )
            )
        else:
            segments.append(KeySegment(value=part))
    return RouteKey(source=key, segments=tuple(segments))
