"""EventStream and SSEEvent types.

Frozen dataclasses for Server-Sent Events. The SSE handler inspects
these to format the wire protocol.
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """A single Server-Sent Event."""

    data: str
    event: str | None = None
    id: str | None = None
    retry: int | None = None

    def encode(self) -> str:
        """Serialize to SSE wire format."""
        lines: list[str] = []
        if self.event:
            lines.append(f"event: {self.event}")
        if self.id:
            lines.append(f"id: {self.id}")
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        lines.extend(f"data: {line}" for line in self.data.split("\n"))
        lines.append("")  # Trailing newline to terminate the event
        return "\n".join(lines) + "\n"

    @classmethod
    def from_value(cls, value: Any, event: str | None = None) -> "SSEEvent":
        """Wrap a yielded value: strings as-is, everything else as JSON."""
        if isinstance(value, SSEEvent):
            return value
        if isinstance(value, str):
            return cls(data=value, event=event)
        return cls(data=json.dumps(value, default=str), event=event)


@dataclass(frozen=True, slots=True)
class EventStream:
    """Stream Server-Sent Events to the client.

    The generator yields ``str`` (sent as data), ``SSEEvent`` (sent
    as-is) or any JSON-serialisable value. Live channels yield their
    ``COMMAND[ DATA]`` messages as plain strings::

        return EventStream(live_stream(broker, channel))
    """

    generator: AsyncIterator[Any]
    event_type: str | None = None
    heartbeat_interval: float = 15.0
