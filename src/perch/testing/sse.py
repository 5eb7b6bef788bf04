"""SSE testing utilities.

Parses a live channel response into events and live commands for use
in test assertions.
"""

import contextlib
from dataclasses import dataclass, field

from perch.realtime.events import SSEEvent


@dataclass(frozen=True, slots=True)
class SSETestResult:
    """Collected events from an SSE endpoint.

    Returned by ``TestClient.sse()`` after the connection closes.
    """

    events: tuple[SSEEvent, ...]
    heartbeats: int
    status: int
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def commands(self) -> tuple[tuple[str, str], ...]:
        """Live channel messages split into ``(COMMAND, data)``."""
        pairs = []
        for event in self.events:
            command, _, data = event.data.partition(" ")
            pairs.append((command, data))
        return tuple(pairs)


def parse_sse_frames(raw: str) -> tuple[list[SSEEvent], int]:
    """Parse raw SSE text into events and a heartbeat count.

    Frames are separated by blank lines. Comment frames containing
    "heartbeat" are counted, not returned.
    """
    events: list[SSEEvent] = []
    heartbeats = 0

    for block in raw.split("\n\n"):
        if not block.strip():
            continue
        if block.startswith(":"):
            if "heartbeat" in block:
                heartbeats += 1
            continue

        event_type: str | None = None
        data_lines: list[str] = []
        event_id: str | None = None
        retry: int | None = None

        for line in block.split("\n"):
            if line.startswith("event: "):
                event_type = line[7:]
            elif line.startswith("data: "):
                data_lines.append(line[6:])
            elif line.startswith("id: "):
                event_id = line[4:]
            elif line.startswith("retry: "):
                with contextlib.suppress(ValueError):
                    retry = int(line[7:])

        if data_lines:
            events.append(
                SSEEvent(data="\n".join(data_lines), event=event_type, id=event_id, retry=retry)
            )

    return events, heartbeats
