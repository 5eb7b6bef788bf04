"""Entrypoint resolution and rendering.

An entrypoint is the value an app exposes for a realm: a route map,
a route handler, a generator function, a render preset, or plain
content. ``resolve_entrypoint_route`` walks it down to terminal content
and a render method; ``PageRenderer`` turns that into a document.
"""

from perch.rendering.entrypoints import (
    KEEP_CONTENT,
    RouteHandler,
    RouteManager,
    request_dependent,
)
from perch.rendering.methods import (
    RenderMethod,
    RenderPreset,
    render_backend,
    render_dynamic,
    render_hybrid,
    render_static,
)
from perch.rendering.proxy import EntrypointProxy, proxy
from perch.rendering.resolver import ResolvedRoute, refetch_route, resolve_entrypoint_route
from perch.rendering.templates import Template

__all__ = [
    "KEEP_CONTENT",
    "EntrypointProxy",
    "RenderMethod",
    "RenderPreset",
    "ResolvedRoute",
    "RouteHandler",
    "RouteManager",
    "Template",
    "proxy",
    "refetch_route",
    "render_backend",
    "render_dynamic",
    "render_hybrid",
    "render_static",
    "request_dependent",
    "resolve_entrypoint_route",
]
