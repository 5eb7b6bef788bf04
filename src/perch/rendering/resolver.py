"""Entrypoint resolution.

``resolve_entrypoint_route`` reduces an entrypoint to concrete content
and a render method for one route. Resolution is depth-first and async
at every step:

1. awaitables are awaited, then resolved again
2. presets fix the render method for everything below them
3. route maps consume the matched leading segments
4. route handlers delegate to the entrypoint they return
5. route managers resolve internally and become the content
6. generators are called with ``(context, params)``
7. anything else is terminal content

All state lives in a per-call ``_Walk``; nothing is shared between
concurrent resolutions. Exceptions raised by generators and handlers
propagate to the caller.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from perch._internal.invoke import invoke
from perch.context import Context
from perch.errors import ConfigurationError
from perch.rendering.content import DEFAULT_METHODS, ContentKind, classify_content, special_status
from perch.rendering.entrypoints import (
    KEEP_CONTENT,
    EntrypointKind,
    RouteMap,
    entrypoint_kind,
    static_fallback,
)
from perch.rendering.methods import RenderMethod, RenderPreset, choose_method
from perch.routing.patterns import KeyMatch, RouteFilter, compile_key
from perch.routing.route import Route, RouteRepresentation, parse_route

logger = logging.getLogger("perch.routing")


@dataclass(frozen=True, slots=True)
class ResolvedRoute:
    """Outcome of resolving an entrypoint for one route.

    Attributes:
        content: Terminal content, ``KEEP_CONTENT``, or ``None`` when
            nothing matched.
        render_method: Fixed for the rest of the request.
        status_code: 200 unless a special value implies another.
        headers: Headers implied by the content (e.g. ``Location``).
        params: Parameters captured by route-map keys.
        steps: Entrypoint layers visited, terminal content included.
    """

    content: Any
    render_method: RenderMethod
    status_code: int = 200
    headers: tuple[tuple[str, str], ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)
    steps: int = 0

    @property
    def has_content(self) -> bool:
        return self.content is not None and self.content is not KEEP_CONTENT

    @property
    def kind(self) -> ContentKind:
        return classify_content(self.content)


@dataclass(slots=True)
class _Walk:
    context: Context
    static_only: bool
    steps: int = 0


async def resolve_entrypoint_route(
    entrypoint: Any,
    route: RouteRepresentation | None = None,
    context: Context | None = None,
    *,
    static_only: bool = False,
) -> ResolvedRoute:
    """Resolve *entrypoint* for *route*.

    Args:
        entrypoint: Any entrypoint value. Never mutated.
        route: The route to resolve; defaults to ``context.route``.
        context: Resolution context; a bare one is created if omitted.
        static_only: Skip request-dependent generators and handlers,
            resolving their static fallback instead.

    Returns:
        A ``ResolvedRoute``. A route map without a matching key gives
        ``content=None``, which callers treat as "not found".
    """
    if route is None:
        route = context.route if context is not None else Route()
    parsed = parse_route(route)
    if context is None:
        context = Context(route=parsed, static_only=static_only)
    walk = _Walk(context=context, static_only=static_only or context.static_only)
    return await _resolve(entrypoint, parsed, {}, None, walk)


async def _resolve(
    entrypoint: Any,
    route: Route,
    params: dict[str, Any],
    fixed: RenderMethod | None,
    walk: _Walk,
) -> ResolvedRoute:
    walk.steps += 1
    resolver = _RESOLVERS[entrypoint_kind(entrypoint)]
    return await resolver(entrypoint, route, params, fixed, walk)


async def _resolve_awaitable(
    value: Awaitable[Any], route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    return await _resolve(await value, route, params, fixed, walk)


async def _resolve_preset(
    preset: RenderPreset, route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    return await _resolve(preset.content, route, params, fixed or preset.method, walk)


async def _resolve_keep(
    value: Any, route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    return ResolvedRoute(
        content=KEEP_CONTENT,
        render_method=choose_method(fixed, RenderMethod.DYNAMIC),
        params=params,
        steps=walk.steps,
    )


async def _resolve_route_map(
    route_map: RouteMap, route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    found = match_route_map(route_map, route, walk.context)
    if found is None:
        logger.debug("no route-map key matches %s", route)
        return ResolvedRoute(
            content=None,
            render_method=choose_method(fixed, RenderMethod.BACKEND),
            params=params,
            steps=walk.steps,
        )
    key_match, value = found
    merged = {**params, **key_match.params}
    return await _resolve(value, route.remainder(key_match.consumed), merged, fixed, walk)


async def _resolve_handler(
    handler: Any, route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    if walk.static_only:
        dependent, fallback = static_fallback(handler)
        if dependent:
            return await _resolve(fallback, route, params, fixed, walk)
    delegate = await invoke(handler.get_route, route, walk.context)
    return await _resolve(delegate, route, params, fixed, walk)


async def _resolve_manager(
    manager: Any, route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    reported = await invoke(manager.resolve_route, route, walk.context)
    resolved = parse_route(reported) if reported is not None else Route()
    if resolved.segments != route.segments:
        # A manager that could not resolve the whole remainder has no content for it
        logger.debug("route manager %r resolved %s of %s", manager, resolved, route)
        return ResolvedRoute(
            content=None,
            render_method=choose_method(fixed, RenderMethod.BACKEND),
            params=params,
            steps=walk.steps,
        )
    return _terminal(manager, params, fixed, walk)


async def _resolve_generator(
    generator: Callable[..., Any], route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    if walk.static_only:
        dependent, fallback = static_fallback(generator)
        if dependent:
            return await _resolve(fallback, route, params, fixed, walk)
    result = await call_generator(generator, walk.context, params)
    return await _resolve(result, route, params, fixed, walk)


async def _resolve_content(
    value: Any, route: Route, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk,
) -> ResolvedRoute:
    return _terminal(value, params, fixed, walk)


def _terminal(value: Any, params: dict[str, Any], fixed: RenderMethod | None, walk: _Walk) -> ResolvedRoute:
    kind = classify_content(value)
    forced = RenderMethod.RAW_CONTENT if kind is ContentKind.RAW else None
    status, headers = special_status(value) if kind is ContentKind.SPECIAL else (200, ())
    return ResolvedRoute(
        content=value,
        render_method=choose_method(fixed, DEFAULT_METHODS[kind], forced=forced),
        status_code=status,
        headers=headers,
        params=params,
        steps=walk.steps,
    )


_RESOLVERS: dict[EntrypointKind, Callable[..., Awaitable[ResolvedRoute]]] = {
    EntrypointKind.AWAITABLE: _resolve_awaitable,
    EntrypointKind.PRESET: _resolve_preset,
    EntrypointKind.KEEP: _resolve_keep,
    EntrypointKind.ROUTE_MAP: _resolve_route_map,
    EntrypointKind.HANDLER: _resolve_handler,
    EntrypointKind.MANAGER: _resolve_manager,
    EntrypointKind.GENERATOR: _resolve_generator,
    EntrypointKind.CONTENT: _resolve_content,
}


# -- Shared helpers --


def match_route_map(
    route_map: RouteMap, route: Route, context: Context,
) -> tuple[KeyMatch, Any] | None:
    """Find the entry of *route_map* that handles *route*.

    A literal key equal to the whole route wins outright. Otherwise keys
    are tried in iteration order (prefix literals, parameter patterns,
    ``*``, filters) and the first match wins; there is no backtracking.
    """
    for key, value in route_map.items():
        if isinstance(key, str):
            exact = compile_key(key).match_exact(route)
            if exact is not None:
                return exact, value

    for key, value in route_map.items():
        if isinstance(key, RouteFilter):
            if key.predicate(context):
                return KeyMatch(consumed=0), value
            continue
        if not isinstance(key, str):
            msg = f"Unsupported route-map key {key!r}; use a string or a RouteFilter"
            raise ConfigurationError(msg)
        matched = compile_key(key).match_prefix(route)
        if matched is not None:
            return matched, value
    return None


async def call_generator(generator: Callable[..., Any], context: Context, params: dict[str, Any]) -> Any:
    """Call a content generator with as many of ``(context, params)`` as it accepts."""
    try:
        sig = inspect.signature(generator)
    except (TypeError, ValueError):
        return await invoke(generator, context, params)

    positional = [
        p
        for p in sig.parameters.values()
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    takes_varargs = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in sig.parameters.values())
    if takes_varargs or len(positional) >= 2:
        return await invoke(generator, context, params)
    if len(positional) == 1:
        return await invoke(generator, context)
    return await invoke(generator)


async def refetch_route(
    route: RouteRepresentation,
    entrypoint: Any,
    context: Context | None = None,
) -> Route:
    """Recompute the route that *entrypoint* currently represents.

    Walks the same layers as resolution, collecting the segments that
    route maps consume. Reaching a ``RouteManager`` yields the consumed
    prefix plus its ``get_internal_route()``; anything else yields the
    given route unchanged.
    """
    parsed = parse_route(route)
    if context is None:
        context = Context(route=parsed)
    consumed: list[str] = []
    remaining = parsed
    params: dict[str, Any] = {}
    current = entrypoint

    while True:
        match entrypoint_kind(current):
            case EntrypointKind.AWAITABLE:
                current = await current
            case EntrypointKind.PRESET:
                current = current.content
            case EntrypointKind.ROUTE_MAP:
                found = match_route_map(current, remaining, context)
                if found is None:
                    return parsed
                key_match, current = found
                consumed.extend(remaining.segments[: key_match.consumed])
                params = {**params, **key_match.params}
                remaining = remaining.remainder(key_match.consumed)
            case EntrypointKind.HANDLER:
                current = await invoke(current.get_route, remaining, context)
            case EntrypointKind.GENERATOR:
                current = await call_generator(current, context, params)
            case EntrypointKind.MANAGER:
                internal = parse_route(await invoke(current.get_internal_route))
                return Route((*consumed, *internal.segments), internal.query or parsed.query)
            case _:
                return parsed
