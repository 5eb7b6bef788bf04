"""Perch application class.

Mutable during setup (entrypoints, error handlers, context providers,
lifecycle hooks). Frozen at runtime when ``app.run()``, ``__call__()``
or the test client is first used.
"""

from __future__ import annotations

import inspect
import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

import anyio
import anyio.to_thread

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.types import ContextProvider, ErrorHandler
from perch.config import AppConfig
from perch.context import Context, context_var
from perch.http.response import Response, StreamingResponse
from perch.live.broker import RELOAD, LiveUpdateBroker
from perch.live.values import LiveValue, LiveValueRegistry
from perch.navigation import Navigator
from perch.realms.discovery import discover_entrypoint, load_entrypoint
from perch.realms.generator import ExposedModule, ProxyGenerator
from perch.realms.virtual import ImportMap, VirtualFiles
from perch.rendering.methods import RenderMethod, RenderPreset
from perch.rendering.page import BUILTIN_TEMPLATES, PageRenderer
from perch.rendering.resolver import ResolvedRoute, resolve_entrypoint_route
from perch.rendering.templates import create_environment
from perch.routing.route import RouteRepresentation, parse_route
from perch.server.handler import Services, handle_error, handle_request, render_route
from perch.server.terminal_errors import log_error

logger = logging.getLogger("perch.server")

_SERVER_ONLY = (RenderMethod.BACKEND, RenderMethod.STATIC)


class App:
    """The perch application.

    Holds one entrypoint per realm. Unless given explicitly, entrypoints
    are discovered in the configured realm directories when the app
    freezes. The live update broker and the proxy generator are owned
    by the app and torn down on lifespan shutdown.

    Thread safety:
        The freeze transition uses a Lock + double-check so exactly one
        caller builds the runtime state.
    """

    __slots__ = (
        "_backend",
        "_backend_path",
        "_context_providers",
        "_error_handlers",
        "_freeze_lock",
        "_frontend",
        "_frontend_path",
        "_frozen",
        "_services",
        "_shutdown_hooks",
        "_startup_hooks",
        "broker",
        "config",
        "files",
        "generator",
        "import_map",
        "registry",
        "start_id",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        backend: Any = None,
        frontend: Any = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self._backend = backend
        self._frontend = frontend
        self._backend_path: Path | None = None
        self._frontend_path: Path | None = None
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._context_providers: list[ContextProvider] = []
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        self._services: Services | None = None

        # Runtime services exist from the start so values and imports
        # can be registered during setup.
        self.start_id: str = uuid.uuid4().hex
        self.registry = LiveValueRegistry()
        self.broker = LiveUpdateBroker(self.registry, reload_coalesce=self.config.reload_coalesce)
        self.files = VirtualFiles()
        self.import_map = ImportMap()
        self.generator = ProxyGenerator(
            self.config,
            files=self.files,
            import_map=self.import_map,
            on_regenerated=self._stub_regenerated,
        )

    # -- Entrypoints --

    @property
    def backend(self) -> Any:
        return self._backend

    @property
    def frontend(self) -> Any:
        return self._frontend

    def set_entrypoint(self, realm: str, entrypoint: Any) -> None:
        """Set the ``"backend"`` or ``"frontend"`` entrypoint."""
        self._check_not_frozen()
        match realm:
            case "backend":
                self._backend = entrypoint
            case "frontend":
                self._frontend = entrypoint
            case _:
                msg = f"Unknown realm {realm!r}; expected 'backend' or 'frontend'"
                raise ValueError(msg)

    @property
    def serves_frontend(self) -> bool:
        """Whether pages may hand routes to the frontend entrypoint.

        A backend entrypoint pinned to BACKEND or STATIC rendering keeps
        every page on the server.
        """
        if self._frontend is None:
            return False
        backend = self._backend
        return not (isinstance(backend, RenderPreset) and backend.method in _SERVER_ONLY)

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator.

        The handler's return value is resolved and rendered like any
        entrypoint; a 200 result keeps the error's status.
        """

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Context --

    def context(self, func: ContextProvider) -> ContextProvider:
        """Register a context provider via decorator.

        Providers run before every request resolution with the
        ``Context``; a returned mapping is merged into ``context.shared``.

        Usage::

            @app.context
            def site(ctx):
                return {"title": "My site"}
        """
        self._check_not_frozen()
        self._context_providers.append(func)
        return func

    # -- Live values --

    def live_value(self, value: Any = None, *, id: str | None = None) -> LiveValue:  # noqa: A002
        """Create a ``LiveValue`` registered with this app's broker."""
        live = LiveValue(value, id=id)
        self.registry.register(live)
        return live

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown,
        before the broker and the proxy generator are closed.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Resolution --

    async def resolve(
        self,
        route: RouteRepresentation,
        *,
        realm: str = "backend",
        static_only: bool = False,
    ) -> ResolvedRoute:
        """Resolve one realm's entrypoint for *route* outside a request."""
        self._ensure_frozen()
        entrypoint = self._frontend if realm == "frontend" else self._backend
        parsed = parse_route(route)
        context = Context(
            route=parsed,
            language=self.config.default_language,
            static_only=static_only,
            registry=self.registry,
        )
        return await resolve_entrypoint_route(entrypoint, parsed, context)

    async def prerender(
        self,
        routes: Iterable[RouteRepresentation],
    ) -> dict[str, Response | StreamingResponse]:
        """Render *routes* concurrently with request-dependent parts skipped.

        Returns responses keyed by the route's path. Failures render
        through the error pipeline like they would for a request.
        """
        self._ensure_frozen()
        services = self._services
        assert services is not None
        results: dict[str, Response | StreamingResponse] = {}

        async def render_one(route: RouteRepresentation) -> None:
            parsed = parse_route(route)
            context = Context(
                route=parsed,
                language=self.config.default_language,
                static_only=True,
                registry=self.registry,
            )
            token = context_var.set(context)
            try:
                results[parsed.path] = await render_route(services.backend, parsed, context, services)
            except Exception as exc:
                results[parsed.path] = await handle_error(exc, None, context, services)
            finally:
                context_var.reset(token)

        async with anyio.create_task_group() as tg:
            for route in routes:
                tg.start_soon(render_one, route)
        return results

    def navigator(self, current: RouteRepresentation = "/", *, inferred: Any = None) -> Navigator:
        """A headless client navigator over this app's entrypoints."""
        self._ensure_frozen()
        return Navigator(
            self._frontend,
            self._backend,
            current=current,
            inferred=inferred,
            context_factory=lambda route: Context(
                route=route, language=self.config.default_language
            ),
        )

    # -- Source changes --

    async def handle_import(
        self,
        imported: str,
        importer: str | Path,
        names: Iterable[str] = ("*",),
        *,
        no_side_effects: bool = False,
    ) -> str | None:
        """Route an import through the proxy generator."""
        return await self.generator.handle_import(
            imported, importer, names, no_side_effects=no_side_effects
        )

    async def notify_source_changed(self, path: str | Path) -> None:
        """React to a changed source file.

        A changed entrypoint file is reloaded. Stubs proxying the file
        are regenerated (which tells clients to reload); any other change
        reloads clients directly.
        """
        changed = Path(path).resolve()
        if self._frozen:
            await self._reload_entrypoint(changed)
        if await self.generator.refresh(changed):
            return
        self.broker.broadcast(RELOAD)

    async def _reload_entrypoint(self, changed: Path) -> None:
        services = self._services
        assert services is not None
        if changed not in (self._backend_path, self._frontend_path):
            return
        try:
            entrypoint = await anyio.to_thread.run_sync(load_entrypoint, changed)
        except Exception as exc:
            # The previous entrypoint stays in place until the file loads again
            log_error(exc, prefix=f"Cannot reload entrypoint {changed}")
            return
        if changed == self._backend_path:
            self._backend = entrypoint
            logger.info("Reloaded backend entrypoint %s", changed)
        else:
            self._frontend = entrypoint
            logger.info("Reloaded frontend entrypoint %s", changed)
        self._services = replace(
            services, backend=self._backend, serves_frontend=self.serves_frontend
        )

    def _stub_regenerated(self, exposed: ExposedModule) -> None:
        logger.debug("Stub %s regenerated", exposed.web_path)
        self.broker.broadcast(RELOAD)

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start the pounce development server.

        Realm roots are watched alongside the working directory when
        ``debug`` is on.
        """
        self._ensure_frozen()

        from perch.server.dev import run_dev_server

        realm_dirs = tuple(
            str(self.config.resolve_dir(directory))
            for directory in (
                *self.config.frontend_dirs,
                *self.config.backend_dirs,
                *self.config.common_dirs,
            )
        )
        run_dev_server(
            self,
            host or self.config.host,
            port or self.config.port,
            reload=self.config.debug,
            reload_include=self.config.reload_include,
            reload_dirs=(*self.config.reload_dirs, *realm_dirs),
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        assert self._services is not None
        await handle_request(scope, receive, send, services=self._services)

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol."""
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    for hook in self._startup_hooks:
                        result = hook()
                        if inspect.isawaitable(result):
                            await result
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    result = hook()
                    if inspect.isawaitable(result):
                        await result
                self.close()
                await send({"type": "lifespan.shutdown.complete"})
                return

    def close(self) -> None:
        """Tear down the broker's channels and the generator's timers."""
        self.generator.close()
        self.broker.close()

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Build the runtime state. Only called while holding _freeze_lock."""
        if self._backend is None:
            found = discover_entrypoint(self.config.resolve_dir(d) for d in self.config.backend_dirs)
            if found is not None:
                self._backend, self._backend_path = found[0], found[1].resolve()
        if self._frontend is None:
            found = discover_entrypoint(self.config.resolve_dir(d) for d in self.config.frontend_dirs)
            if found is not None:
                self._frontend, self._frontend_path = found[0], found[1].resolve()
        if self._backend is None and self._frontend is None:
            logger.warning("No backend or frontend entrypoint; every route will be 'No content'")

        env = create_environment(self.config, BUILTIN_TEMPLATES)
        pages = PageRenderer(env, self.config, start_id=self.start_id)
        self._services = Services(
            config=self.config,
            pages=pages,
            broker=self.broker,
            registry=self.registry,
            files=self.files,
            import_map=self.import_map,
            start_id=self.start_id,
            backend=self._backend,
            serves_frontend=self.serves_frontend,
            error_handlers=dict(self._error_handlers),
            context_providers=tuple(self._context_providers),
        )
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Set entrypoints and register handlers before calling app.run()."
            )
            raise RuntimeError(msg)
