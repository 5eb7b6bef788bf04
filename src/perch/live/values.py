"""Observable values pushed to clients over the live channel.

A ``LiveValue`` holds a JSON-serialisable value and notifies observers
on every assignment. The ``LiveValueRegistry`` maps ids to values so a
client can ask to observe a value it saw in a rendered page.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from html import escape
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("perch.live")

_ids = itertools.count(1)

Observer = Callable[[Any], None]
Teardown = Callable[[], None]


@runtime_checkable
class Observable(Protocol):
    """Anything the broker can subscribe to."""

    def observe(self, callback: Observer) -> Teardown: ...


class LiveValue:
    """A value whose changes are observable.

    Usage::

        counter = LiveValue(0)
        stop = counter.observe(print)
        counter.value = 1   # prints 1
        stop()
    """

    __slots__ = ("_observers", "_value", "id")

    def __init__(self, value: Any = None, *, id: str | None = None) -> None:  # noqa: A002
        self.id: str = id or f"v{next(_ids)}"
        self._value = value
        self._observers: list[Observer] = []

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new: Any) -> None:
        self._value = new
        for callback in list(self._observers):
            try:
                callback(new)
            except Exception:
                logger.exception("Observer of live value %s failed", self.id)

    def observe(self, callback: Observer) -> Teardown:
        """Subscribe *callback*; returns a function that unsubscribes it."""
        self._observers.append(callback)

        def teardown() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return teardown

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def __html__(self) -> str:
        return f'<span data-perch-value="{escape(self.id)}">{escape(str(self._value))}</span>'

    def __repr__(self) -> str:
        return f"LiveValue({self._value!r}, id={self.id!r})"


class LiveValueRegistry:
    """Maps value ids to live values for one running server."""

    __slots__ = ("_values",)

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def register(self, value: Any, *, value_id: str | None = None) -> str:
        """Register *value* under *value_id* (default: its own ``id``)."""
        key = value_id or value.id
        self._values[key] = value
        return key

    def get(self, value_id: str) -> Any | None:
        return self._values.get(value_id)

    def unregister(self, value_id: str) -> None:
        self._values.pop(value_id, None)

    def __contains__(self, value_id: object) -> bool:
        return value_id in self._values

    def __len__(self) -> int:
        return len(self._values)
