"""Perch: route resolution, render-method negotiation and live realms.

An app exposes an entrypoint per realm. Each request or client
navigation is resolved against it to content plus a render method
(static, backend, hybrid, dynamic, or raw), and a live channel keeps
open pages in sync with changing sources and values.

Basic usage::

    from perch import App, render_static

    app = App(backend={
        "/": "Hello, World!",
        "/about": render_static(Template("about.html")),
        "/users/{id:int}": lambda ctx, params: f"User {params['id']}",
    })

    app.run()
"""

__version__ = "0.1.0-dev"
__all__ = [
    "KEEP_CONTENT",
    "App",
    "AppConfig",
    "Context",
    "EntrypointProxy",
    "HTTPError",
    "LiveValue",
    "Markdown",
    "NotFound",
    "PerchError",
    "Redirect",
    "RenderMethod",
    "RenderPreset",
    "Response",
    "Route",
    "RouteFilter",
    "Template",
    "get_context",
    "parse_route",
    "proxy",
    "render_backend",
    "render_dynamic",
    "render_hybrid",
    "render_static",
    "request_dependent",
    "resolve_entrypoint_route",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name in ("Context", "get_context"):
        from perch import context as _ctx

        return getattr(_ctx, name)

    if name in ("Response", "Redirect"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name in ("Route", "RouteFilter", "parse_route"):
        from perch import routing as _routing

        return getattr(_routing, name)

    if name == "LiveValue":
        from perch.live.values import LiveValue

        return LiveValue

    if name == "Markdown":
        from perch.markdown.renderer import Markdown

        return Markdown

    if name in (
        "KEEP_CONTENT",
        "EntrypointProxy",
        "RenderMethod",
        "RenderPreset",
        "Template",
        "proxy",
        "render_backend",
        "render_dynamic",
        "render_hybrid",
        "render_static",
        "request_dependent",
        "resolve_entrypoint_route",
    ):
        from perch import rendering as _rendering

        return getattr(_rendering, name)

    if name in ("HTTPError", "NotFound", "PerchError"):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
