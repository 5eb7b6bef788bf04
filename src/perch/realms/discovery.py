"""Entrypoint file discovery for realm directories.

Each realm directory may hold one ``entrypoint.py`` (its ``entrypoint``
or ``default`` attribute), ``entrypoint.md`` (Markdown content), or
``entrypoint.json`` (a route map of plain content).
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from perch.errors import AmbiguousEntrypointError, ConfigurationError
from perch.markdown.renderer import Markdown
from perch.realms.access import load_module_file

ENTRYPOINT_FILE_NAMES = ("entrypoint.py", "entrypoint.md", "entrypoint.json")
_ENTRYPOINT_ATTRIBUTES = ("entrypoint", "default")


def find_entrypoint_file(directory: str | Path) -> Path | None:
    """Return the entrypoint file in *directory*, if there is one.

    Raises:
        AmbiguousEntrypointError: More than one entrypoint file exists.
    """
    root = Path(directory)
    found = [root / name for name in ENTRYPOINT_FILE_NAMES if (root / name).is_file()]
    if len(found) > 1:
        raise AmbiguousEntrypointError(root, (path.name for path in found))
    return found[0] if found else None


def load_entrypoint(path: Path) -> Any:
    match path.suffix:
        case ".py":
            module = load_module_file(path, "perch_entrypoint")
            for attribute in _ENTRYPOINT_ATTRIBUTES:
                if hasattr(module, attribute):
                    return getattr(module, attribute)
            msg = f"{path} defines neither 'entrypoint' nor 'default'"
            raise ConfigurationError(msg)
        case ".md":
            return Markdown(path.read_text(encoding="utf-8"))
        case ".json":
            return json.loads(path.read_text(encoding="utf-8"))
        case _:
            msg = f"Unsupported entrypoint file: {path}"
            raise ConfigurationError(msg)


def discover_entrypoint(directories: Iterable[Path]) -> tuple[Any, Path] | None:
    """Load the first entrypoint found in *directories*, in order."""
    for directory in directories:
        if not directory.is_dir():
            continue
        path = find_entrypoint_file(directory)
        if path is not None:
            return load_entrypoint(path), path
    return None
