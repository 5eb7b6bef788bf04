"""Resolution context and its request-scoped ContextVar.

Provides:
- ``Context``: what every generator, handler, and proxy hook receives.
- ``context_var``: the ``Context`` of the resolution running in this task.

The request handler sets ``context_var`` before resolving and resets it
afterwards. ``ContextVar`` is task-local under asyncio, so interleaved
requests never see each other's context.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from perch.routing.route import Route

if TYPE_CHECKING:
    from perch.http.request import Request
    from perch.live.values import LiveValue, LiveValueRegistry


@dataclass(slots=True)
class Context:
    """Per-resolution state handed to entrypoints.

    Attributes:
        route: The full route being resolved.
        request: The HTTP request, or ``None`` for client navigation
            and static prerendering.
        language: Content language, sent as ``Content-Language``.
        shared: Data shared with the client (context providers fill it).
        private: Server-only data.
        observed: Live values used while rendering, keyed by id. Their
            ids are embedded in the page's live channel URL.
        static_only: Set while prerendering; request-dependent
            entrypoints resolve to their static fallback.
    """

    route: Route = field(default_factory=Route)
    request: Request | None = None
    language: str = "en"
    shared: dict[str, Any] = field(default_factory=dict)
    private: dict[str, Any] = field(default_factory=dict)
    observed: dict[str, LiveValue] = field(default_factory=dict)
    static_only: bool = False
    registry: LiveValueRegistry | None = field(default=None, repr=False)

    def observe(self, value: LiveValue) -> str:
        """Register *value* for live updates on the rendered page.

        Returns the value id. Without a registry (client navigation,
        static prerendering) the value is still tracked locally.
        """
        value_id = self.registry.register(value) if self.registry is not None else value.id
        self.observed[value_id] = value
        return value_id


context_var: ContextVar[Context] = ContextVar("perch_context")
"""The current resolution context. Set by the ASGI handler."""


def get_context() -> Context:
    """Return the current resolution context.

    Raises ``LookupError`` if called outside a resolution.
    """
    return context_var.get()
