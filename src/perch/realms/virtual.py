"""In-memory store for generated files and the import map that points at them."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass

PYTHON_SOURCE = "text/x-python; charset=utf-8"


@dataclass(frozen=True, slots=True)
class VirtualFile:
    path: str
    content: str
    content_type: str = PYTHON_SOURCE


class VirtualFiles:
    """Generated files, keyed by the web path they are served under."""

    __slots__ = ("_files",)

    def __init__(self) -> None:
        self._files: dict[str, VirtualFile] = {}

    def add(self, path: str, content: str, content_type: str = PYTHON_SOURCE) -> VirtualFile:
        file = VirtualFile(path, content, content_type)
        self._files[path] = file
        return file

    def get(self, path: str) -> VirtualFile | None:
        return self._files.get(path)

    def remove(self, path: str) -> bool:
        return self._files.pop(path, None) is not None

    def paths(self) -> list[str]:
        return sorted(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)


class ImportMap:
    """Module specifier to web path, served as ``{"imports": {...}}``."""

    __slots__ = ("_imports",)

    def __init__(self, imports: Mapping[str, str] | None = None) -> None:
        self._imports: dict[str, str] = dict(imports or {})

    def set(self, specifier: str, web_path: str) -> None:
        self._imports[specifier] = web_path

    def get(self, specifier: str) -> str | None:
        return self._imports.get(specifier)

    def remove(self, specifier: str) -> bool:
        return self._imports.pop(specifier, None) is not None

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"imports": dict(sorted(self._imports.items()))}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def __len__(self) -> int:
        return len(self._imports)
