"""Live update broker — one per running server.

Tracks open client channels ("senders"), the live values each channel
observes, and broadcasts commands such as ``RELOAD``. Every message on
the wire is ``COMMAND[ DATA]``.

The broker is owned by the ``App`` and constructed/closed with it, so
tests can build one in isolation.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from perch.live.values import LiveValueRegistry, Observable, Teardown

logger = logging.getLogger("perch.live")

RELOAD = "RELOAD"
PING = "PING"
ERROR = "ERROR"
UPDATE = "UPDATE"


class Sender(Protocol):
    """A client channel capability. ``send`` raises when the channel is gone."""

    def send(self, message: str) -> None: ...


def format_command(command: str, data: Any = None) -> str:
    """Build a wire message: ``COMMAND`` or ``COMMAND DATA``."""
    if data is None:
        return command
    if not isinstance(data, str):
        data = json.dumps(data, default=str)
    return f"{command} {data}"


class LiveUpdateBroker:
    """Fan-out of commands and value updates to client channels."""

    __slots__ = (
        "_observers",
        "_pending_reloads",
        "_reload_flush",
        "_reloads_total",
        "registry",
        "reload_coalesce",
    )

    def __init__(
        self,
        registry: LiveValueRegistry | None = None,
        *,
        reload_coalesce: float = 0.2,
    ) -> None:
        self.registry = registry if registry is not None else LiveValueRegistry()
        self.reload_coalesce = reload_coalesce
        # sender -> {value id -> teardown}
        self._observers: dict[Sender, dict[str, Teardown]] = {}
        self._pending_reloads = 0
        self._reloads_total = 0
        self._reload_flush: asyncio.TimerHandle | None = None

    # -- Senders --

    @property
    def senders(self) -> frozenset[Sender]:
        return frozenset(self._observers)

    def add_sender(self, sender: Sender) -> None:
        self._observers.setdefault(sender, {})
        logger.debug("live channel opened (%d open)", len(self._observers))

    def remove_sender(self, sender: Sender) -> bool:
        """Forget *sender* and tear down every observer registered under it."""
        observers = self._observers.pop(sender, None)
        if observers is None:
            return False
        for value_id, teardown in observers.items():
            try:
                teardown()
            except Exception:
                logger.exception("Teardown of observer for %s failed", value_id)
        logger.debug("live channel closed (%d open)", len(self._observers))
        return True

    # -- Commands --

    def send_command(self, sender: Sender, command: str, data: Any = None) -> bool:
        """Send one command to one sender.

        A failing send removes the sender (and its observers) and
        returns ``False``.
        """
        try:
            sender.send(format_command(command, data))
        except Exception as exc:
            logger.debug("live channel send failed (%s), dropping it", exc)
            self.remove_sender(sender)
            return False
        if command == RELOAD:
            self._register_reload()
        return True

    def broadcast(self, command: str, data: Any = None) -> int:
        """Send a command to every open channel; returns how many got it."""
        return sum(
            1 for sender in list(self._observers) if self.send_command(sender, command, data)
        )

    # -- Observation --

    def observe(self, sender: Sender, value_id: str) -> bool:
        """Push updates of the value *value_id* to *sender*.

        Unknown values, values that are not observable, and unknown
        senders are ignored (logged at DEBUG). Observing the same value
        twice from one sender keeps the first subscription.
        """
        observers = self._observers.get(sender)
        if observers is None:
            logger.debug("observe(%s) for a closed channel ignored", value_id)
            return False
        if value_id in observers:
            return True
        value = self.registry.get(value_id)
        if value is None:
            logger.debug("observe(%s): value not found", value_id)
            return False
        if not isinstance(value, Observable):
            logger.debug("observe(%s): %s is not observable", value_id, type(value).__name__)
            return False

        def push(new: Any) -> None:
            self.send_command(sender, UPDATE, f"{value_id} {json.dumps(new, default=str)}")

        observers[value_id] = value.observe(push)
        return True

    def observed_by(self, sender: Sender) -> frozenset[str]:
        return frozenset(self._observers.get(sender, ()))

    # -- Reload accounting --

    @property
    def reload_count(self) -> int:
        """Total number of clients told to reload."""
        return self._reloads_total

    def _register_reload(self) -> None:
        self._reloads_total += 1
        self._pending_reloads += 1
        if self._reload_flush is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._flush_reload_log()
            return
        self._reload_flush = loop.call_later(self.reload_coalesce, self._flush_reload_log)

    def _flush_reload_log(self) -> None:
        self._reload_flush = None
        count, self._pending_reloads = self._pending_reloads, 0
        if count:
            logger.info("hot reloaded %d client%s", count, "" if count == 1 else "s")

    def close(self) -> None:
        """Drop every channel and flush the pending reload log line."""
        for sender in list(self._observers):
            self.remove_sender(sender)
        if self._reload_flush is not None:
            self._reload_flush.cancel()
            self._flush_reload_log()
