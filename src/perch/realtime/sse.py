"""Server-Sent Events protocol implementation over ASGI.

Handles the full SSE lifecycle: sends ``text/event-stream`` headers,
produces events from an async generator, monitors for client disconnect,
and sends periodic heartbeat comments to keep the connection alive.
"""

import asyncio
import contextlib
import logging
from typing import Any

from perch._internal.asgi import Receive, Send
from perch.realtime.events import EventStream, SSEEvent

logger = logging.getLogger("perch.server")


async def handle_sse(
    event_stream: EventStream,
    send: Send,
    receive: Receive,
    *,
    debug: bool = False,
    retry_ms: int | None = None,
) -> None:
    """Stream Server-Sent Events over an ASGI connection.

    1. Sends ``http.response.start`` with ``text/event-stream`` headers.
    2. Launches two concurrent tasks:
       - **Event producer**: consumes the async generator, converts each
         yielded value to SSE wire format, and sends as ASGI body chunks.
       - **Disconnect monitor**: awaits ``http.disconnect`` from the client
         and cancels the producer.
    3. Sends periodic heartbeat comments (``:``) on idle.

    Cancelling the producer closes the generator, which is how live
    channels unregister from the broker.
    """
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [
                (b"content-type", b"text/event-stream"),
                (b"cache-control", b"no-cache"),
                (b"connection", b"keep-alive"),
                (b"x-accel-buffering", b"no"),
            ],
        }
    )

    if retry_ms is not None:
        await send(
            {
                "type": "http.response.body",
                "body": f"retry: {retry_ms}\n\n".encode(),
                "more_body": True,
            }
        )

    disconnected = asyncio.Event()

    async def monitor_disconnect() -> None:
        """Wait for client disconnect."""
        while not disconnected.is_set():
            message = await receive()
            if message.get("type") == "http.disconnect":
                disconnected.set()
                return

    async def produce_events() -> None:
        """Consume the generator and send SSE events.

        ``asyncio.wait`` does not cancel the pending ``__anext__()`` task
        on timeout, so it survives across heartbeat intervals.
        """
        pending_next: asyncio.Task[Any] | None = None
        gen_iter = event_stream.generator.__aiter__()
        try:
            while not disconnected.is_set():
                if pending_next is None:

                    async def _next() -> Any:
                        return await gen_iter.__anext__()

                    pending_next = asyncio.create_task(_next())

                done, _ = await asyncio.wait(
                    {pending_next},
                    timeout=event_stream.heartbeat_interval,
                )

                if not done:
                    if disconnected.is_set():
                        break
                    try:
                        await send(
                            {
                                "type": "http.response.body",
                                "body": b": heartbeat\n\n",
                                "more_body": True,
                            }
                        )
                    except RuntimeError:
                        break  # Response already closed (client disconnected)
                    continue

                pending_next = None
                try:
                    value = done.pop().result()
                except StopAsyncIteration:
                    break

                sse_text = SSEEvent.from_value(value, event_stream.event_type).encode()
                try:
                    await send(
                        {
                            "type": "http.response.body",
                            "body": sse_text.encode("utf-8"),
                            "more_body": True,
                        }
                    )
                except RuntimeError:
                    break  # Response already closed (client disconnected)
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            from perch.server.terminal_errors import log_error

            log_error(exc)
            detail = f"{type(exc).__name__}: {exc}" if debug else "Internal server error"
            with contextlib.suppress(Exception):
                await send(
                    {
                        "type": "http.response.body",
                        "body": SSEEvent(data=f"ERROR {detail}").encode().encode("utf-8"),
                        "more_body": True,
                    }
                )
        finally:
            if pending_next is not None:
                if not pending_next.done():
                    pending_next.cancel()
                with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
                    await pending_next
            # Run the generator's cleanup (unregisters live channels)
            aclose = getattr(gen_iter, "aclose", None)
            if aclose is not None:
                with contextlib.suppress(Exception):
                    await aclose()

    producer_task = asyncio.create_task(produce_events())
    monitor_task = asyncio.create_task(monitor_disconnect())

    try:
        _done, pending = await asyncio.wait(
            {producer_task, monitor_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    finally:
        await send(
            {
                "type": "http.response.body",
                "body": b"",
                "more_body": False,
            }
        )
