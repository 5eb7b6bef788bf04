"""Client-side navigation, modelled headlessly.

The browser runtime keeps one current route and, on every navigation,
tries its content sources in a fixed order:

1. the frontend entrypoint,
2. the backend entrypoint,
3. the entrypoint inferred from what is currently displayed, accepted
   only if recomputing its route agrees with the current route,
4. a full page reload.

``Navigator`` runs the same state machine against local entrypoints so
apps and tests can check which source a route ends up on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from perch.context import Context
from perch.rendering.resolver import ResolvedRoute, refetch_route, resolve_entrypoint_route
from perch.routing.route import Route, RouteRepresentation, parse_route, routes_equal

logger = logging.getLogger("perch.routing")


class NavigationOutcome(Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    INFERRED = "inferred"
    RELOAD = "reload"
    UNCHANGED = "unchanged"
    SUPERSEDED = "superseded"
    NO_CONTENT = "no content"


@dataclass(frozen=True, slots=True)
class NavigationResult:
    outcome: NavigationOutcome
    route: Route
    resolved: ResolvedRoute | None = None


def routes_agree(current: Route, recomputed: Route) -> bool:
    """Whether a recomputed route still describes *current*.

    Any segment mismatch is a disagreement. Routes differing only in
    their query are accepted.
    """
    if current.segments != recomputed.segments:
        return False
    if current.query != recomputed.query:
        logger.debug("Routes %s and %s differ only in their query", current, recomputed)
    return True


class Navigator:
    """Current route plus the fallback chain that fills it with content."""

    __slots__ = ("_context_factory", "backend", "current", "frontend", "history", "inferred")

    def __init__(
        self,
        frontend: Any = None,
        backend: Any = None,
        *,
        current: RouteRepresentation = "/",
        inferred: Any = None,
        context_factory: Callable[[Route], Context] | None = None,
    ) -> None:
        self.frontend = frontend
        self.backend = backend
        self.inferred = inferred
        self.current = parse_route(current)
        self.history: list[Route] = []
        self._context_factory = context_factory or (lambda route: Context(route=route))

    async def start(self) -> NavigationResult:
        """Initial render: backend content first, then frontend."""
        route = self.current
        for outcome, entrypoint in (
            (NavigationOutcome.BACKEND, self.backend),
            (NavigationOutcome.FRONTEND, self.frontend),
        ):
            resolved = await self._try(entrypoint, route)
            if resolved is not None:
                return NavigationResult(outcome, route, resolved)
        logger.warning("No content for %s", route)
        return NavigationResult(NavigationOutcome.NO_CONTENT, route)

    async def navigate(self, route: RouteRepresentation) -> NavigationResult:
        """Move to *route*; navigating to the current route does nothing."""
        target = parse_route(route)
        if routes_equal(target, self.current):
            return NavigationResult(NavigationOutcome.UNCHANGED, target)
        self.history.append(self.current)
        self.current = target
        return await self.handle_current_route()

    async def handle_current_route(self, *, allow_reload: bool = True) -> NavigationResult:
        """Fill the current route, walking the fallback chain.

        A resolution that finishes after another navigation moved the
        current route elsewhere is reported as ``SUPERSEDED``.
        """
        route = self.current
        for outcome, entrypoint in (
            (NavigationOutcome.FRONTEND, self.frontend),
            (NavigationOutcome.BACKEND, self.backend),
        ):
            resolved = await self._try(entrypoint, route)
            if not routes_equal(route, self.current):
                return NavigationResult(NavigationOutcome.SUPERSEDED, route, resolved)
            if resolved is not None:
                return NavigationResult(outcome, route, resolved)

        if self.inferred is not None:
            resolved = await self._try(self.inferred, route)
            if resolved is not None and await self.reconcile(route, self.inferred):
                return NavigationResult(NavigationOutcome.INFERRED, route, resolved)

        if allow_reload:
            logger.debug("No client-side content for %s, reloading", route)
            return NavigationResult(NavigationOutcome.RELOAD, route)
        logger.warning("No content for %s", route)
        return NavigationResult(NavigationOutcome.NO_CONTENT, route)

    async def reconcile(self, route: Route, entrypoint: Any) -> bool:
        """Check that *entrypoint* still represents *route*."""
        recomputed = await refetch_route(route, entrypoint, self._context_factory(route))
        agrees = routes_agree(route, recomputed)
        if not agrees:
            logger.debug("Displayed content is at %s, not %s", recomputed, route)
        return agrees

    async def _try(self, entrypoint: Any, route: Route) -> ResolvedRoute | None:
        if entrypoint is None:
            return None
        resolved = await resolve_entrypoint_route(entrypoint, route, self._context_factory(route))
        return resolved if resolved.has_content else None
