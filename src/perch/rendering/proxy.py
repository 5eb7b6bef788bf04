"""EntrypointProxy — intercept and transform another entrypoint.

A proxy is a ``RouteHandler`` that runs a fixed pipeline for each
route::

    redirect -> intercept (or the wrapped entrypoint) -> resolve -> transform

Each hook is an optional capability. Subclasses implement any subset of
``redirect``, ``intercept`` and ``transform``, sync or async; a hook
returning ``None`` leaves the pipeline unchanged::

    class Maintenance(EntrypointProxy):
        def intercept(self, route, context):
            if context.shared.get("maintenance"):
                return "Back soon"

    entrypoint = Maintenance(site)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from perch._internal.invoke import invoke
from perch.rendering.methods import RenderMethod, RenderPreset
from perch.rendering.resolver import resolve_entrypoint_route
from perch.routing.route import Route, parse_route

if TYPE_CHECKING:
    from perch.context import Context


@runtime_checkable
class Redirecting(Protocol):
    def redirect(self, route: Route, context: Context) -> Any: ...


@runtime_checkable
class Intercepting(Protocol):
    def intercept(self, route: Route, context: Context) -> Any: ...


@runtime_checkable
class Transforming(Protocol):
    def transform(
        self, content: Any, render_method: RenderMethod, route: Route, context: Context,
    ) -> Any: ...


class EntrypointProxy:
    """Wraps an entrypoint with optional redirect/intercept/transform hooks."""

    def __init__(self, entrypoint: Any = None) -> None:
        self._entrypoint = entrypoint

    @property
    def entrypoint(self) -> Any:
        return self._entrypoint

    async def get_route(self, route: Route, context: Context) -> Any:
        entrypoint = self._entrypoint

        if isinstance(self, Redirecting):
            redirected = await invoke(self.redirect, route, context)
            if redirected is not None:
                route = parse_route(redirected)

        if isinstance(self, Intercepting):
            intercepted = await invoke(self.intercept, route, context)
            if intercepted is not None:
                entrypoint = intercepted

        resolved = await resolve_entrypoint_route(
            entrypoint, route, context, static_only=context.static_only,
        )

        if isinstance(self, Transforming):
            transformed = await invoke(
                self.transform, resolved.content, resolved.render_method, route, context,
            )
            if transformed is not None:
                return transformed

        return RenderPreset(resolved.render_method, resolved.content)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._entrypoint!r})"


class _HookProxy(EntrypointProxy):
    def __init__(self, entrypoint: Any, hooks: dict[str, Any]) -> None:
        super().__init__(entrypoint)
        for name, hook in hooks.items():
            if hook is not None:
                setattr(self, name, hook)


def proxy(
    entrypoint: Any = None,
    *,
    redirect: Any = None,
    intercept: Any = None,
    transform: Any = None,
) -> EntrypointProxy:
    """Build a proxy from plain functions instead of a subclass::

        static_site = proxy(site, transform=lambda content, *_: render_static(content))
    """
    return _HookProxy(
        entrypoint,
        {"redirect": redirect, "intercept": intercept, "transform": transform},
    )
