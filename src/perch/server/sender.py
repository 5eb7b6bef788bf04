"""ASGI response sending — translates perch responses to ASGI messages.

Handles both single-body responses and chunked streaming responses.
"""

import logging
from collections.abc import AsyncIterator

from perch._internal.asgi import Send
from perch.http.response import Response, StreamingResponse

logger = logging.getLogger("perch.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def _raw_headers(content_type: str, headers: tuple[tuple[str, str], ...]) -> list[tuple[bytes, bytes]]:
    raw = [(b"content-type", content_type.encode("latin-1"))]
    raw.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in headers
        if name.lower() != "content-type"
    )
    return raw


async def send_response(response: Response, send: Send) -> None:
    """Translate a Response into ASGI send() calls."""
    raw_headers = _raw_headers(response.content_type, response.headers)
    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": body,
        }
    )


async def send_streaming_response(response: StreamingResponse, send: Send) -> None:
    """Send a streaming response via chunked transfer encoding.

    Sends headers immediately, then each chunk as an ASGI body
    message with ``more_body=True``. Closes with an empty body.
    A mid-stream error is logged and ends the stream early.
    """
    raw_headers = _raw_headers(response.content_type, response.headers)
    raw_headers.append((b"transfer-encoding", b"chunked"))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )

    def _encode_chunk(chunk: str | bytes) -> bytes:
        return chunk.encode("utf-8") if isinstance(chunk, str) else chunk

    async def _send_chunk(chunk: str | bytes) -> None:
        if chunk:
            await send(
                {
                    "type": "http.response.body",
                    "body": _encode_chunk(chunk),
                    "more_body": True,
                }
            )

    try:
        if isinstance(response.chunks, AsyncIterator):
            async for chunk in response.chunks:
                await _send_chunk(chunk)
        else:
            for chunk in response.chunks:
                await _send_chunk(chunk)
    except Exception as exc:
        from perch.server.terminal_errors import log_error

        log_error(exc, prefix="Streaming response failed")

    await send(
        {
            "type": "http.response.body",
            "body": b"",
            "more_body": False,
        }
    )
