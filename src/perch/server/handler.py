"""ASGI handler: translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Serves the live
channel, generated stubs and the import map, and otherwise resolves the
backend entrypoint for the request route and renders the result.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.invoke import invoke
from perch.config import AppConfig
from perch.context import Context, context_var
from perch.errors import ResolutionFailure
from perch.http.request import Request
from perch.http.response import Response, StreamingResponse
from perch.live.broker import ERROR, RELOAD, LiveUpdateBroker, format_command
from perch.live.channel import LiveChannel, live_stream
from perch.live.values import LiveValueRegistry
from perch.realms.virtual import ImportMap, VirtualFiles
from perch.realtime.events import EventStream
from perch.realtime.sse import handle_sse
from perch.rendering.methods import RenderMethod
from perch.rendering.page import PageRenderer
from perch.rendering.resolver import resolve_entrypoint_route
from perch.routing.route import Route, parse_route
from perch.server.errors import (
    ErrorHandlers,
    call_error_handler,
    error_status,
    find_error_handler,
    handle_http_error,
    handle_internal_error,
)
from perch.server.negotiation import negotiate
from perch.server.sender import send_response, send_streaming_response
from perch.server.terminal_errors import log_error

logger = logging.getLogger("perch.server")

LANGUAGE_COOKIE = "perch-lang"
EMPTY_USID_MESSAGE = "Cannot enable hot reloading, empty app usid"


@dataclass(frozen=True, slots=True)
class Services:
    """Everything the request handler needs from a frozen App."""

    config: AppConfig
    pages: PageRenderer
    broker: LiveUpdateBroker
    registry: LiveValueRegistry
    files: VirtualFiles
    import_map: ImportMap
    start_id: str
    backend: Any = None
    serves_frontend: bool = False
    error_handlers: ErrorHandlers = field(default_factory=dict)
    context_providers: tuple[Callable[..., Any], ...] = ()


async def handle_request(scope: Scope, receive: Receive, send: Send, *, services: Services) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope)
    config = services.config

    if config.live and request.path == config.live_path:
        stream = EventStream(
            live_events(request, services),
            heartbeat_interval=config.sse_heartbeat_interval,
        )
        await handle_sse(stream, send, receive, debug=config.debug, retry_ms=config.sse_retry_ms)
        return

    response = await _respond(scope, request, services)
    if isinstance(response, StreamingResponse):
        await send_streaming_response(response, send)
    else:
        await send_response(response, send)


# -- Live channel --


async def live_events(request: Request, services: Services) -> AsyncIterator[str]:
    """Messages for one live channel connection.

    A page rendered by an earlier process (different start id) is told
    to reload once and is never registered.
    """
    config = services.config
    usid = request.query.get("usid") or ""
    if not usid:
        yield format_command(ERROR, EMPTY_USID_MESSAGE)
        return

    if usid != services.start_id:
        stale = LiveChannel()
        services.broker.send_command(stale, RELOAD)
        stale.close()
        async for message in stale.messages(config.ping_interval):
            yield message
        return

    channel = LiveChannel()
    observe = _observed_ids(request.query.get("observe"))
    async for message in live_stream(
        services.broker, channel, observe, ping_interval=config.ping_interval
    ):
        yield message


def _observed_ids(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        ids = json.loads(raw)
    except ValueError:
        logger.debug("Ignoring malformed observe list %r", raw)
        return ()
    if not isinstance(ids, list):
        return ()
    return tuple(str(value_id) for value_id in ids)


# -- Pages --


async def _respond(scope: Scope, request: Request, services: Services) -> Response | StreamingResponse:
    config = services.config

    if request.path == config.import_map_path:
        return Response(body=services.import_map.to_json(), content_type="application/importmap+json")
    file = services.files.get(request.path)
    if file is not None:
        return Response(body=file.content, content_type=file.content_type)

    context = Context(
        request=request,
        language=request_language(request, config),
        registry=services.registry,
    )
    token = context_var.set(context)
    try:
        context.route = parse_route(_request_target(scope, request))
        for provider in services.context_providers:
            shared = await invoke(provider, context)
            if isinstance(shared, Mapping):
                context.shared.update(shared)
        return await render_route(services.backend, context.route, context, services)
    except Exception as exc:
        return await handle_error(exc, request, context, services)
    finally:
        context_var.reset(token)


async def render_route(
    entrypoint: Any,
    route: Route,
    context: Context,
    services: Services,
) -> Response | StreamingResponse:
    """Resolve *entrypoint* for *route* and render the outcome.

    Without backend content, a DYNAMIC shell hands the route to the
    frontend entrypoint when the app serves one.

    Raises:
        ResolutionFailure: Neither realm can provide content.
    """
    resolved = None
    if entrypoint is not None:
        resolved = await resolve_entrypoint_route(entrypoint, route, context)
    if resolved is None or not resolved.has_content:
        if services.serves_frontend:
            html = services.pages.page("", RenderMethod.DYNAMIC, context)
            return Response(body=html, headers=(("Content-Language", context.language),))
        raise ResolutionFailure(route, ("backend",))
    return await negotiate(resolved, services.pages, context)


async def handle_error(
    exc: Exception,
    request: Request | None,
    context: Context,
    services: Services,
) -> Response | StreamingResponse:
    """Render *exc* through a registered error handler or the built-in error page."""
    handler = find_error_handler(exc, services.error_handlers)
    if handler is not None:
        try:
            result = await call_error_handler(handler, request, exc)
            response = await render_route(result, context.route, context, services)
        except Exception as handler_exc:
            log_error(handler_exc, request, prefix="Error handler failed")
        else:
            if response.status == 200:
                response = response.with_status(error_status(exc))
            return response

    if error_status(exc) >= 500:
        return handle_internal_error(exc, request, services.pages, context)
    return handle_http_error(exc, request, services.pages, context)


def _request_target(scope: Scope, request: Request) -> str:
    """Undecoded path plus query string, so malformed escapes are caught."""
    raw_path = scope.get("raw_path")
    target = raw_path.decode("latin-1") if raw_path else quote(request.path)
    query = request.query.raw
    return f"{target}?{query}" if query else target


def request_language(request: Request, config: AppConfig) -> str:
    """Language from the ``perch-lang`` cookie, ``Accept-Language``, or the default."""
    return (
        request.cookies.get(LANGUAGE_COOKIE)
        or request.accept_language
        or config.default_language
    )
