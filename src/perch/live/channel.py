"""Queue-backed live channels and the message streams behind them."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable

from perch.errors import PerchError
from perch.live.broker import PING, LiveUpdateBroker

logger = logging.getLogger("perch.live")


class ChannelClosed(PerchError):  # noqa: N818
    """Raised by ``LiveChannel.send`` after the client went away."""


class LiveChannel:
    """A sender capability for one connected client.

    ``send`` never blocks: messages are queued and drained by
    ``messages()``, which the SSE handler consumes.
    """

    __slots__ = ("_closed", "_queue")

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: str) -> None:
        if self._closed:
            msg = "live channel is closed"
            raise ChannelClosed(msg)
        self._queue.put_nowait(message)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def messages(self, ping_interval: float) -> AsyncIterator[str]:
        """Yield queued messages, or ``PING`` after *ping_interval* idle seconds."""
        while True:
            try:
                message = await asyncio.wait_for(self._queue.get(), timeout=ping_interval)
            except TimeoutError:
                yield PING
                continue
            if message is None:
                return
            yield message


async def live_stream(
    broker: LiveUpdateBroker,
    channel: LiveChannel,
    observe: Iterable[str] = (),
    *,
    ping_interval: float = 5.0,
) -> AsyncIterator[str]:
    """Register *channel* with *broker* for as long as the stream is consumed.

    The channel is removed from the broker (tearing down its observers)
    when the consumer stops, including on client disconnect.
    """
    broker.add_sender(channel)
    for value_id in observe:
        broker.observe(channel, value_id)
    try:
        async for message in channel.messages(ping_interval):
            yield message
    finally:
        channel.close()
        broker.remove_sender(channel)


async def single_message(message: str) -> AsyncIterator[str]:
    """A stream that sends one message and ends."""
    yield message
