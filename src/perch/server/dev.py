"""Development server.

Starts a pounce ASGI server with the live perch App object, single
worker, reloading on source changes when ``debug`` is on.
"""

from __future__ import annotations


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    reload: bool = True,
    reload_include: tuple[str, ...] = (),
    reload_dirs: tuple[str, ...] = (),
    app_path: str | None = None,
) -> None:
    """Serve *app* with pounce.

    Pounce's ``run()`` takes an import string, but perch has a live
    ``App`` object, so ``pounce.Server`` is used directly.

    Args:
        app: ASGI callable (perch App instance).
        host: Bind host address.
        port: Bind port number.
        reload: Restart on file changes.
        reload_include: Extra file extensions to watch (e.g. ``(".md", ".json")``).
        reload_dirs: Extra directories to watch, typically the realm roots.
        app_path: Optional ``"module:attribute"`` import string so reloads
            pick up code changes.
    """
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=1,
        reload=reload,
        reload_include=reload_include,
        reload_dirs=reload_dirs,
    )
    Server(config, app, app_path=app_path).run()
