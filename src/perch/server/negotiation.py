"""Content negotiation: resolved content to an HTTP response.

``negotiate`` takes the outcome of entrypoint resolution and produces a
``Response`` (or ``StreamingResponse``). Dispatch is on the content
kind the resolver already computed, then on the concrete type for
special values.
"""

from __future__ import annotations

import mimetypes
from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING, Any

import anyio

from perch.errors import HTTPError, NotFound, ResolutionFailure
from perch.http.response import Redirect, Response, StreamingResponse
from perch.rendering.content import ContentKind
from perch.rendering.markup import SerializeOptions

if TYPE_CHECKING:
    from perch.context import Context
    from perch.rendering.page import PageRenderer
    from perch.rendering.resolver import ResolvedRoute

OCTET_STREAM = "application/octet-stream"


async def negotiate(
    resolved: ResolvedRoute,
    pages: PageRenderer,
    context: Context,
) -> Response | StreamingResponse:
    """Convert resolved content to a response.

    Dispatch order:
        raw -> passed through (bytes as ``application/octet-stream``)
        special -> redirect, file, status page, or error page
        unsupported -> 500 error page
        anything else -> page shell for the resolved render method

    Raises:
        ResolutionFailure: *resolved* carries no content.
    """
    content = resolved.content
    language = ("Content-Language", context.language)

    match resolved.kind:
        case ContentKind.EMPTY:
            raise ResolutionFailure(context.route)
        case ContentKind.RAW:
            return _raw(content, resolved)
        case ContentKind.SPECIAL:
            return await _special(content, resolved, pages, context)
        case ContentKind.UNSUPPORTED:
            message = f"Cannot render content of type {type(content).__name__}"
            body = pages.error_page(500, message, context=context)
            return Response(body=body, status=500, headers=(language,))
        case kind:
            options = SerializeOptions.for_method(resolved.render_method, context.language)
            body = pages.body_html(content, kind, options)
            html = pages.page(body, resolved.render_method, context)
            return Response(
                body=html,
                status=resolved.status_code,
                headers=(language, *resolved.headers),
            )


def _raw(content: Any, resolved: ResolvedRoute) -> Response | StreamingResponse:
    match content:
        case Response() | StreamingResponse():
            return content.with_headers(resolved.headers) if resolved.headers else content
        case _:
            return Response(
                body=bytes(content),
                status=resolved.status_code,
                content_type=OCTET_STREAM,
                headers=resolved.headers,
            )


async def _special(
    content: Any,
    resolved: ResolvedRoute,
    pages: PageRenderer,
    context: Context,
) -> Response:
    language = ("Content-Language", context.language)
    match content:
        case Redirect():
            return Response(body=b"", status=resolved.status_code, headers=resolved.headers)
        case Path():
            file = anyio.Path(content)
            if not await file.is_file():
                raise NotFound(f"File not found: {content.name}")
            content_type = mimetypes.guess_type(content.name)[0] or OCTET_STREAM
            return Response(
                body=await file.read_bytes(),
                status=resolved.status_code,
                content_type=content_type,
                headers=resolved.headers,
            )
        case HTTPStatus() if content < 400:
            options = SerializeOptions.for_method(resolved.render_method, context.language)
            body = pages.body_html(content, ContentKind.SPECIAL, options)
            html = pages.page(body, resolved.render_method, context, title=content.phrase)
            return Response(body=html, status=int(content), headers=(language,))
        case HTTPStatus():
            body = pages.error_page(int(content), content.description, context=context)
            return Response(body=body, status=int(content), headers=(language,))
        case HTTPError(detail=detail):
            body = pages.error_page(resolved.status_code, detail, context=context)
            return Response(
                body=body, status=resolved.status_code, headers=(language, *resolved.headers)
            )
        case _:
            message = str(content) or type(content).__name__
            body = pages.error_page(resolved.status_code, message, context=context)
            return Response(body=body, status=resolved.status_code, headers=(language,))
