"""Cross-realm value access.

Generated stubs never import the real module. Each exported value is
fetched through a ``RemoteValueAccess`` collaborator by path
(``"<module>#<name>"``). ``LocalModuleAccess`` is the in-process
implementation the app and tests use: it loads project files directly.
"""

from __future__ import annotations

import importlib
import importlib.machinery
import importlib.util
import itertools
import json
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol, runtime_checkable

import anyio
import anyio.to_thread

logger = logging.getLogger("perch.realms")

DEFAULT_EXPORT = "default"

_module_ids = itertools.count()


@runtime_checkable
class RemoteValueAccess(Protocol):
    async def resolve_remote_value(self, path: str) -> Any: ...

    async def export_names_of(self, module: str) -> frozenset[str]: ...


def split_value_path(path: str) -> tuple[str, str]:
    """Split ``"module#name"``; a bare module path means its default export."""
    module, sep, name = path.partition("#")
    return module, (name if sep else DEFAULT_EXPORT)


class _SourceOnlyLoader(importlib.machinery.SourceFileLoader):
    """Compiles from source every time.

    Cached bytecode is validated by mtime and size, so it misses same-size
    edits made within one second.
    """

    def get_code(self, fullname: str) -> Any:
        source_path = self.get_filename(fullname)
        return self.source_to_code(self.get_data(source_path), source_path)


def load_module_file(path: Path, prefix: str = "perch_module") -> ModuleType:
    """Execute a Python file as a fresh, unregistered module."""
    module_name = f"_{prefix}_{path.stem}_{next(_module_ids)}"
    spec = importlib.util.spec_from_file_location(
        module_name, path, loader=_SourceOnlyLoader(module_name, str(path))
    )
    if spec is None or spec.loader is None:
        msg = f"Cannot load module from {path}"
        raise ImportError(msg)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def export_names(loaded: ModuleType | dict[str, Any]) -> frozenset[str]:
    """Names a loaded module exports.

    Interface modules (JSON objects) export their keys plus ``default``,
    the whole object. Python modules export ``__all__`` when defined,
    otherwise every public name that is not itself a module.
    """
    if isinstance(loaded, dict):
        return frozenset(str(key) for key in loaded) | {DEFAULT_EXPORT}
    declared = getattr(loaded, "__all__", None)
    if declared is not None:
        return frozenset(declared)
    return frozenset(
        name
        for name, value in vars(loaded).items()
        if not name.startswith("_") and not isinstance(value, ModuleType)
    )


def is_interface_module(module: str | Path) -> bool:
    return Path(str(module)).suffix == ".json"


class LocalModuleAccess:
    """Resolve values by loading modules inside this process.

    File modules are given relative to *project_dir* (or absolute) and
    cached until their mtime changes; dotted names go through the normal
    import system. Loading runs in a worker thread.
    """

    __slots__ = ("_cache", "project_dir")

    def __init__(self, project_dir: str | Path = ".") -> None:
        self.project_dir = Path(project_dir).resolve()
        self._cache: dict[Path, tuple[float, ModuleType | dict[str, Any]]] = {}

    def locate(self, module: str) -> Path | None:
        """Filesystem path of *module*, or ``None`` for a dotted module name."""
        if "/" not in module and "\\" not in module and not module.endswith((".py", ".json")):
            return None
        return (self.project_dir / module).resolve()

    async def load(self, module: str) -> ModuleType | dict[str, Any]:
        path = self.locate(module)
        if path is None:
            return await anyio.to_thread.run_sync(importlib.import_module, module)

        mtime = (await anyio.Path(path).stat()).st_mtime
        cached = self._cache.get(path)
        if cached is not None and cached[0] == mtime:
            return cached[1]

        loaded: ModuleType | dict[str, Any]
        if is_interface_module(path):
            data = json.loads(await anyio.Path(path).read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                msg = f"Interface module {path} must contain a JSON object"
                raise TypeError(msg)
            loaded = data
        else:
            loaded = await anyio.to_thread.run_sync(load_module_file, path, "perch_realm")
        self._cache[path] = (mtime, loaded)
        logger.debug("Loaded %s", path)
        return loaded

    def invalidate(self, path: str | Path) -> bool:
        """Drop a cached module; returns whether it was cached."""
        return self._cache.pop(Path(path).resolve(), None) is not None

    async def export_names_of(self, module: str) -> frozenset[str]:
        return export_names(await self.load(module))

    async def resolve_remote_value(self, path: str) -> Any:
        module, name = split_value_path(path)
        loaded = await self.load(module)
        if isinstance(loaded, dict):
            if name == DEFAULT_EXPORT:
                return loaded
            try:
                return loaded[name]
            except KeyError:
                msg = f"{module} has no export {name!r}"
                raise LookupError(msg) from None
        try:
            return getattr(loaded, name)
        except AttributeError:
            msg = f"{module} has no export {name!r}"
            raise LookupError(msg) from None
