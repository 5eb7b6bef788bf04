"""Error handling pipeline for perch requests.

Maps exceptions raised while resolving or rendering to responses,
either through handlers registered with ``@app.error(...)`` or through
the built-in error page. A handler's return value is an entrypoint like
any other: the caller resolves and renders it.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from perch.errors import HTTPError, InvalidRouteError, ResolutionFailure
from perch.http.response import Response
from perch.server.terminal_errors import log_error

if TYPE_CHECKING:
    from perch.context import Context
    from perch.http.request import Request
    from perch.rendering.page import PageRenderer

logger = logging.getLogger("perch.server")

ErrorHandlers = Mapping[int | type, Callable[..., Any]]


def error_status(exc: BaseException) -> int:
    match exc:
        case HTTPError(status=status):
            return status
        case ResolutionFailure():
            return 404
        case InvalidRouteError():
            return 400
        case _:
            return 500


def find_error_handler(exc: BaseException, handlers: ErrorHandlers) -> Callable[..., Any] | None:
    """Most specific handler for *exc*: exception type (MRO order), then status."""
    for cls in type(exc).__mro__:
        handler = handlers.get(cls)
        if handler is not None:
            return handler
    return handlers.get(error_status(exc))


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request | None,
    exc: BaseException,
) -> Any:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc)
    args, and may be sync or async.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()

    if inspect.isawaitable(result):
        result = await result
    return result


def handle_http_error(
    exc: BaseException,
    request: Request | None,
    pages: PageRenderer,
    context: Context | None = None,
) -> Response:
    """Default response for client errors (4xx), no handler registered."""
    status = error_status(exc)
    path = request.path if request is not None else "-"
    logger.debug("%d %s: %s", status, path, exc)

    match exc:
        case ResolutionFailure():
            body = pages.error_page(404, str(exc), title="No content", context=context)
        case HTTPError(detail=detail, headers=headers):
            body = pages.error_page(status, detail or f"Error {status}", context=context)
            return Response(body=body, status=status, headers=(*_language(context), *headers))
        case _:
            body = pages.error_page(status, str(exc), context=context)
    return Response(body=body, status=status, headers=_language(context))


def handle_internal_error(
    exc: BaseException,
    request: Request | None,
    pages: PageRenderer,
    context: Context | None = None,
) -> Response:
    """Log an unexpected failure and render the error page with its message."""
    log_error(exc, request)
    status = error_status(exc)
    message = str(exc) or type(exc).__name__
    body = pages.error_page(status, message, context=context)
    return Response(body=body, status=status, headers=_language(context))


def _language(context: Context | None) -> tuple[tuple[str, str], ...]:
    if context is None:
        return ()
    return (("Content-Language", context.language),)
