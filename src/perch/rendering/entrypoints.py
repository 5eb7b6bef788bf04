"""The entrypoint union.

An entrypoint is whatever a realm offers as "the content for a route":

- terminal content (markup, text, markdown, raw bytes, special values)
- a generator ``(context, params) -> Entrypoint``
- a route map ``{key: Entrypoint}``
- a ``RouteHandler`` that delegates to another entrypoint
- a ``RouteManager`` that routes internally and reports its state
- a ``RenderPreset`` pinning a render method
- an awaitable of any of the above
- ``KEEP_CONTENT``

``entrypoint_kind`` tags a value with exactly one ``EntrypointKind``;
the resolver keeps one resolution function per kind.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from perch.rendering.methods import RenderPreset

if TYPE_CHECKING:
    from perch.context import Context
    from perch.routing.route import Route, RouteRepresentation

T = TypeVar("T")

_REQUEST_DEPENDENT = "__perch_request_dependent__"


class _KeepContent:
    """Sentinel: keep whatever content is currently displayed."""

    __slots__ = ()
    _instance: _KeepContent | None = None

    def __new__(cls) -> _KeepContent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "KEEP_CONTENT"

    def __reduce__(self) -> str:
        return "KEEP_CONTENT"


KEEP_CONTENT = _KeepContent()


@runtime_checkable
class RouteHandler(Protocol):
    """Delegates resolution of a route to another entrypoint."""

    def get_route(self, route: Route, context: Context) -> Any: ...


@runtime_checkable
class RouteManager(Protocol):
    """Routes internally and reports the route it currently shows.

    ``resolve_route`` returns the part of the route it could resolve;
    ``get_internal_route`` returns its state after the last resolution.
    """

    def resolve_route(self, route: Route, context: Context) -> Any: ...

    def get_internal_route(self) -> RouteRepresentation | Any: ...


RouteMap = Mapping[Any, Any]


class EntrypointKind(Enum):
    AWAITABLE = "awaitable"
    PRESET = "preset"
    KEEP = "keep"
    HANDLER = "handler"
    MANAGER = "manager"
    ROUTE_MAP = "route_map"
    GENERATOR = "generator"
    CONTENT = "content"


def entrypoint_kind(value: Any) -> EntrypointKind:
    """Tag *value* with the entrypoint variant it belongs to.

    Handlers and managers are checked before content, since components
    may render as markup and route at the same time.
    """
    match value:
        case _ if inspect.isawaitable(value):
            return EntrypointKind.AWAITABLE
        case RenderPreset():
            return EntrypointKind.PRESET
        case _KeepContent():
            return EntrypointKind.KEEP
        case str() | bytes() | type():
            return EntrypointKind.CONTENT
        case RouteHandler():
            return EntrypointKind.HANDLER
        case RouteManager():
            return EntrypointKind.MANAGER
        case Mapping():
            return EntrypointKind.ROUTE_MAP
        case _ if callable(value) and not hasattr(value, "__html__"):
            return EntrypointKind.GENERATOR
        case _:
            return EntrypointKind.CONTENT


def request_dependent(fallback: Any = None) -> Callable[[T], T]:
    """Mark a generator or handler class as needing a live request.

    During static prerendering the marked entrypoint is not called;
    *fallback* (an entrypoint, or ``None`` for no content) is resolved
    in its place::

        @request_dependent(fallback="Sign in to see your feed")
        async def feed(context, params):
            return await load_feed(context.request)
    """

    def decorator(target: T) -> T:
        setattr(target, _REQUEST_DEPENDENT, (fallback,))
        return target

    return decorator


def static_fallback(value: Any) -> tuple[bool, Any]:
    """``(is_request_dependent, fallback)`` for an entrypoint."""
    marker = getattr(value, _REQUEST_DEPENDENT, None)
    if marker is None:
        return False, None
    return True, marker[0]
