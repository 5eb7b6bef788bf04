"""Cross-realm proxy generator.

When a frontend or common module imports a backend module, the import
is redirected to a generated stub served under ``src_prefix``. For each
stubbed target the generator tracks which names every importer asks
for. Whenever the union of those names changes, a regeneration is
scheduled after ``regeneration_delay`` seconds.

Debouncing uses a generation counter rather than timer cancellation:
every observation bumps the target's generation, and a timer only
regenerates if its generation is still the current one when it fires.
Regenerations of one target are serialised by a per-target lock.
Failures are logged and leave the previous stub in place, so the next
import-set change retries.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from perch._internal.invoke import invoke
from perch.realms.access import LocalModuleAccess, RemoteValueAccess, is_interface_module
from perch.realms.classifier import Realm, RealmLayout
from perch.realms.stubs import StubRenderer
from perch.realms.virtual import ImportMap, VirtualFiles
from perch.server.terminal_errors import log_error

if TYPE_CHECKING:
    from perch.config import AppConfig

logger = logging.getLogger("perch.realms")

WILDCARD = "*"

RegeneratedCallback = Callable[["ExposedModule"], Awaitable[Any] | Any]


@dataclass(slots=True, eq=False)
class ExposedModule:
    """A stubbed module and the import requests that shape its stub.

    Attributes:
        web_path: Path the stub is served under.
        specifier: Module path handed to the value access
            (project-relative file path, or a dotted module name).
        real_path: File the stub proxies; ``None`` for external modules.
        interface: Interface modules also get a ``.pyi`` declaration.
        imports: Requested names per importer (may contain ``"*"``).
        generated: Names in the current stub, ``None`` before the first
            successful regeneration.
        generation: Bumped on every observation that changes the union.
    """

    web_path: str
    specifier: str
    real_path: Path | None = None
    interface: bool = False
    imports: dict[str, frozenset[str]] = field(default_factory=dict)
    generated: frozenset[str] | None = None
    generation: int = 0
    regenerations: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def declaration_path(self) -> str:
        stem, _, _ = self.web_path.rpartition(".")
        return f"{stem}.pyi"


class ProxyGenerator:
    """Owns every exposed module, its stubs, and their regeneration timers.

    One instance per running app. ``close()`` cancels pending timers and
    in-flight regenerations.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        layout: RealmLayout | None = None,
        access: RemoteValueAccess | None = None,
        files: VirtualFiles | None = None,
        import_map: ImportMap | None = None,
        stubs: StubRenderer | None = None,
        on_regenerated: RegeneratedCallback | None = None,
    ) -> None:
        self.config = config
        self.project_dir = Path(config.project_dir).resolve()
        self.layout = layout or RealmLayout.from_config(config)
        self.access = access or LocalModuleAccess(self.project_dir)
        self.files = files if files is not None else VirtualFiles()
        self.import_map = import_map if import_map is not None else ImportMap()
        self.stubs = stubs or StubRenderer()
        self.on_regenerated = on_regenerated
        self._exposed: dict[str, ExposedModule] = {}
        self._pending: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[bool]] = set()
        self._closed = False

    @property
    def exposed(self) -> Mapping[str, ExposedModule]:
        return self._exposed

    # -- Paths --

    def web_path_for(self, real_path: Path) -> str:
        relative = real_path.resolve().relative_to(self.project_dir).as_posix()
        return f"{self.config.src_prefix}{relative}"

    def external_path_for(self, specifier: str) -> str:
        return f"{self.config.external_prefix}{quote(specifier, safe='')}.py"

    def _locate(self, imported: str, importer: Path) -> Path:
        if imported.startswith(("./", "../")):
            return (importer.parent / imported).resolve()
        path = Path(imported)
        if not path.is_absolute():
            path = self.project_dir / path
        return path.resolve()

    # -- Imports --

    async def handle_import(
        self,
        imported: str,
        importer: str | Path,
        names: Iterable[str] = (WILDCARD,),
        *,
        no_side_effects: bool = False,
    ) -> str | None:
        """Decide where an import of *imported* from *importer* resolves.

        Returns the specifier the importer should use instead, or
        ``None`` to leave the import unchanged.

        Raises:
            UnresolvableRealmError: Either side is outside every realm root.
            IllegalRealmImportError: A common or backend module imports a
                frontend module.
        """
        importer_path = Path(importer).resolve()
        requested = frozenset(names)

        if _is_bare_specifier(imported):
            if self.layout.classify(importer_path) is not Realm.FRONTEND:
                return None
            web_path = self.external_path_for(imported)
            if no_side_effects:
                return web_path
            exposed = self._expose(web_path, imported)
            if exposed.generated is None:
                exposed.imports[str(importer_path)] = requested
                await self._regenerate(exposed, exposed.generation)
            else:
                await self.observe_imports(exposed, importer_path, requested)
            return web_path

        imported_path = self._locate(imported, importer_path)
        importer_realm, imported_realm = self.layout.check_import(importer_path, imported_path)

        match importer_realm, imported_realm:
            case Realm.FRONTEND, Realm.FRONTEND:
                relative = Path(os.path.relpath(imported_path, importer_path.parent)).as_posix()
                return relative if relative.startswith("../") else f"./{relative}"
            case (Realm.FRONTEND | Realm.COMMON), Realm.BACKEND:
                pass
            case _:
                return None

        web_path = self.web_path_for(imported_path)
        if no_side_effects:
            return web_path
        specifier = imported_path.relative_to(self.project_dir).as_posix()
        exposed = self._expose(web_path, specifier, imported_path)
        await self.observe_imports(exposed, importer_path, requested)
        return web_path

    def _expose(self, web_path: str, specifier: str, real_path: Path | None = None) -> ExposedModule:
        exposed = self._exposed.get(web_path)
        if exposed is None:
            exposed = ExposedModule(
                web_path=web_path,
                specifier=specifier,
                real_path=real_path,
                interface=real_path is not None and is_interface_module(real_path),
            )
            self._exposed[web_path] = exposed
        return exposed

    async def observe_imports(
        self,
        exposed: ExposedModule,
        importer: str | Path,
        names: Iterable[str],
    ) -> bool:
        """Record what *importer* requests from *exposed*.

        Returns whether a regeneration was scheduled.
        """
        exposed.imports[str(Path(importer).resolve())] = frozenset(names)
        return await self._import_set_changed(exposed)

    async def remove_importer(self, importer: str | Path) -> list[str]:
        """Forget every request made by *importer*.

        Returns the web paths of the targets it had imported.
        """
        key = str(Path(importer).resolve())
        affected: list[str] = []
        for exposed in list(self._exposed.values()):
            if exposed.imports.pop(key, None) is not None:
                affected.append(exposed.web_path)
                await self._import_set_changed(exposed)
        return affected

    async def requested_names(self, exposed: ExposedModule) -> frozenset[str]:
        """Union of all importers' requests, with ``*`` expanded."""
        union: set[str] = set()
        wildcard = False
        for names in exposed.imports.values():
            wildcard = wildcard or WILDCARD in names
            union.update(names - {WILDCARD})
        if wildcard:
            union.update(await self.access.export_names_of(exposed.specifier))
        return frozenset(union)

    async def _import_set_changed(self, exposed: ExposedModule) -> bool:
        try:
            union = await self.requested_names(exposed)
        except Exception as exc:
            log_error(exc, prefix=f"Cannot list exports of {exposed.specifier}")
            union = None

        if union is not None and union == exposed.generated:
            # Supersedes any pending timer for this target.
            exposed.generation += 1
            self._pending.pop(exposed.web_path, None)
            return False
        self._schedule(exposed)
        return True

    # -- Regeneration --

    def _schedule(self, exposed: ExposedModule) -> None:
        exposed.generation += 1
        loop = asyncio.get_running_loop()
        self._pending[exposed.web_path] = loop.call_later(
            self.config.regeneration_delay, self._fire, exposed, exposed.generation
        )

    def _fire(self, exposed: ExposedModule, generation: int) -> None:
        if self._closed or generation != exposed.generation:
            logger.debug("Skipping stale regeneration of %s", exposed.web_path)
            return
        self._pending.pop(exposed.web_path, None)
        task = asyncio.ensure_future(self._regenerate(exposed, generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _regenerate(self, exposed: ExposedModule, generation: int) -> bool:
        async with exposed.lock:
            if generation != exposed.generation:
                return False
            try:
                names = await self.requested_names(exposed)
                available = await self.access.export_names_of(exposed.specifier)
                source = self.stubs.runtime_stub(exposed.specifier, names, available)
                declaration = None
                if exposed.interface:
                    values = await self.access.resolve_remote_value(f"{exposed.specifier}#default")
                    declaration = self.stubs.declaration_stub(exposed.specifier, names, values)
            except Exception as exc:
                log_error(exc, prefix=f"Stub regeneration failed for {exposed.web_path}")
                return False

            previous = exposed.generated or frozenset()
            self.files.add(exposed.web_path, source)
            if declaration is not None:
                self.files.add(exposed.declaration_path, declaration)
            self.import_map.set(exposed.specifier, exposed.web_path)
            exposed.generated = names
            exposed.regenerations += 1

            for name in sorted(names - previous):
                logger.info("+ %s (%s)", name, exposed.web_path)
            for name in sorted(previous - names):
                logger.info("- %s (%s)", name, exposed.web_path)
            for name in sorted(names - available):
                logger.warning(
                    "Another module tried to import %r from %s, which does not exist",
                    name,
                    exposed.specifier,
                )

        if self.on_regenerated is not None:
            await invoke(self.on_regenerated, exposed)
        return True

    async def refresh(self, real_path: str | Path) -> int:
        """Regenerate every stub proxying *real_path* right away.

        Returns the number of stubs regenerated.
        """
        path = Path(real_path).resolve()
        invalidate = getattr(self.access, "invalidate", None)
        if invalidate is not None:
            invalidate(path)

        count = 0
        for exposed in list(self._exposed.values()):
            if exposed.real_path != path:
                continue
            exposed.generation += 1
            self._pending.pop(exposed.web_path, None)
            if await self._regenerate(exposed, exposed.generation):
                count += 1
        return count

    async def wait_idle(self) -> None:
        """Wait until no regeneration is pending or running."""
        while self._pending or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            else:
                await asyncio.sleep(self.config.regeneration_delay / 4 or 0.01)

    def close(self) -> None:
        self._closed = True
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
        for task in self._tasks:
            task.cancel()


def _is_bare_specifier(specifier: str) -> bool:
    """Dotted module names (``"json"``, ``"pkg.sub"``) rather than file paths."""
    if specifier.startswith((".", "/")) or "/" in specifier or "\\" in specifier:
        return False
    return Path(specifier).suffix not in (".py", ".json")
