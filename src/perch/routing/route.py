"""Canonical route model.

A ``Route`` is an immutable sequence of decoded path segments plus a
set of query pairs. Every route representation (string, URL, segment
list) normalises to one through ``parse_route``, so equality is plain
dataclass equality: segment-wise and query-set-wise, with trailing and
repeated slashes ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import TypeAlias
from urllib.parse import ParseResult, SplitResult, parse_qsl, quote, unquote, urlencode, urlsplit

from perch.errors import InvalidRouteError

# A percent sign not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True, slots=True)
class Route:
    """An immutable, normalised route.

    Attributes:
        segments: Decoded path segments, never empty strings.
        query: ``(name, value)`` pairs; order and duplicates of the
            original query string do not matter.
    """

    segments: tuple[str, ...] = ()
    query: frozenset[tuple[str, str]] = frozenset()

    @property
    def path(self) -> str:
        """The percent-encoded path, always starting with ``/``."""
        return "/" + "/".join(quote(s, safe="") for s in self.segments)

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def parent(self) -> Route:
        """The route one segment up (the root is its own parent)."""
        return Route(self.segments[:-1])

    def child(self, *segments: str) -> Route:
        """A new route with *segments* appended (query dropped)."""
        return Route((*self.segments, *(s for s in segments if s)))

    def prefix(self, count: int) -> Route:
        """The first *count* segments, without query."""
        return Route(self.segments[:count])

    def remainder(self, count: int) -> Route:
        """The route left after consuming *count* leading segments.

        The query travels with the remainder.
        """
        return Route(self.segments[count:], self.query)

    def with_query(self, query: Iterable[tuple[str, str]]) -> Route:
        return replace(self, query=frozenset(query))

    def query_dict(self) -> dict[str, str]:
        """Query pairs as a dict (one arbitrary value per repeated name)."""
        return dict(self.query)

    def __str__(self) -> str:
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(sorted(self.query))}"

    def __len__(self) -> int:
        return len(self.segments)


RouteRepresentation: TypeAlias = str | Route | SplitResult | ParseResult | Sequence[str]


def _decode_segment(segment: str) -> str:
    if _BAD_ESCAPE.search(segment):
        msg = f"Malformed percent-encoding in route segment {segment!r}"
        raise InvalidRouteError(msg)
    try:
        return unquote(segment, errors="strict")
    except UnicodeDecodeError as exc:
        msg = f"Route segment {segment!r} does not decode to UTF-8"
        raise InvalidRouteError(msg) from exc


def _decode_query(query: str) -> frozenset[tuple[str, str]]:
    if not query:
        return frozenset()
    if _BAD_ESCAPE.search(query):
        msg = f"Malformed percent-encoding in query {query!r}"
        raise InvalidRouteError(msg)
    try:
        return frozenset(parse_qsl(query, keep_blank_values=True, errors="strict"))
    except UnicodeDecodeError as exc:
        msg = f"Query {query!r} does not decode to UTF-8"
        raise InvalidRouteError(msg) from exc


def _from_path(path: str, query: str = "") -> Route:
    segments = tuple(_decode_segment(part) for part in path.split("/") if part)
    return Route(segments, _decode_query(query))


def parse_route(representation: RouteRepresentation) -> Route:
    """Normalise any route representation into a ``Route``.

    Accepts a path (``"/a/b?x=1"``), an absolute URL, a parsed URL, an
    existing ``Route``, or a list/tuple of already-decoded segments.

    Raises:
        InvalidRouteError: On malformed percent-encoding or a value that
            is not a route representation.
    """
    match representation:
        case Route():
            return representation
        case str():
            parts = urlsplit(representation)
            if parts.scheme and parts.netloc:
                return _from_path(parts.path, parts.query)
            # A leading "//" is repeated slashes here, not a network location
            path, _, query = representation.partition("#")[0].partition("?")
            return _from_path(path, query)
        case SplitResult() | ParseResult():
            return _from_path(representation.path, representation.query)
        case list() | tuple():
            segments: list[str] = []
            for segment in representation:
                if not isinstance(segment, str):
                    msg = f"Route segments must be strings, got {type(segment).__name__}"
                    raise InvalidRouteError(msg)
                segments.extend(part for part in segment.split("/") if part)
            return Route(tuple(segments))
        case _:
            msg = f"Cannot build a route from {type(representation).__name__}"
            raise InvalidRouteError(msg)


def routes_equal(a: RouteRepresentation, b: RouteRepresentation) -> bool:
    """Whether two representations normalise to the same route."""
    return parse_route(a) == parse_route(b)


def is_child_of(a: RouteRepresentation, b: RouteRepresentation) -> bool:
    """Whether route *a* lies strictly below route *b* (query ignored)."""
    child = parse_route(a).segments
    parent = parse_route(b).segments
    return len(child) > len(parent) and child[: len(parent)] == parent
