"""Tests for perch.realms.access and perch.realms.runtime."""

import os
import sys
from pathlib import Path

import pytest

from perch.errors import PerchError
from perch.realms import LocalModuleAccess, RemoteExport, use_access
from perch.realms.access import export_names, load_module_file, split_value_path
from perch.realms.runtime import current_access

API_SOURCE = """\
import json

VERSION = 3

def greet(name):
    return f"hello {name}"

async def total(a, b):
    return a + b

_private = 1
"""


@pytest.fixture
def access(project: Path) -> LocalModuleAccess:
    (project / "backend" / "api.py").write_text(API_SOURCE)
    (project / "backend" / "settings.json").write_text('{"title": "Perch", "pages": 3}')
    return LocalModuleAccess(project)


class TestSplitValuePath:
    def test_named(self) -> None:
        assert split_value_path("backend/api.py#greet") == ("backend/api.py", "greet")

    def test_default(self) -> None:
        assert split_value_path("backend/api.py") == ("backend/api.py", "default")


class TestExportNames:
    async def test_module_exports(self, access: LocalModuleAccess) -> None:
        names = await access.export_names_of("backend/api.py")
        assert names == frozenset({"VERSION", "greet", "total"})

    async def test_dunder_all(self, access: LocalModuleAccess, project: Path) -> None:
        (project / "backend" / "narrow.py").write_text("__all__ = ['a']\na = 1\nb = 2\n")
        assert await access.export_names_of("backend/narrow.py") == frozenset({"a"})

    async def test_interface_keys_plus_default(self, access: LocalModuleAccess) -> None:
        names = await access.export_names_of("backend/settings.json")
        assert names == frozenset({"title", "pages", "default"})

    def test_dict(self) -> None:
        assert export_names({"a": 1}) == frozenset({"a", "default"})


class TestLoadModuleFile:
    def test_fresh_unregistered_module(self, tmp_path: Path) -> None:
        path = tmp_path / "mod.py"
        path.write_text("VALUE = 1\n")
        module = load_module_file(path)
        assert module.VALUE == 1
        assert module.__file__ == str(path)
        assert module.__name__ not in sys.modules

    def test_same_size_edit_with_same_mtime(self, tmp_path: Path) -> None:
        path = tmp_path / "mod.py"
        path.write_text("VALUE = 1\n")
        stat = path.stat()
        assert load_module_file(path).VALUE == 1
        path.write_text("VALUE = 2\n")
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns))
        assert load_module_file(path).VALUE == 2


class TestLocalModuleAccess:
    async def test_resolve_function(self, access: LocalModuleAccess) -> None:
        greet = await access.resolve_remote_value("backend/api.py#greet")
        assert greet("perch") == "hello perch"

    async def test_resolve_interface_value(self, access: LocalModuleAccess) -> None:
        assert await access.resolve_remote_value("backend/settings.json#title") == "Perch"
        whole = await access.resolve_remote_value("backend/settings.json")
        assert whole == {"title": "Perch", "pages": 3}

    async def test_missing_export(self, access: LocalModuleAccess) -> None:
        with pytest.raises(LookupError, match="no export 'nope'"):
            await access.resolve_remote_value("backend/api.py#nope")
        with pytest.raises(LookupError):
            await access.resolve_remote_value("backend/settings.json#nope")

    async def test_missing_file(self, access: LocalModuleAccess) -> None:
        with pytest.raises(FileNotFoundError):
            await access.resolve_remote_value("backend/missing.py#x")

    async def test_interface_must_be_object(self, access: LocalModuleAccess, project: Path) -> None:
        (project / "backend" / "list.json").write_text("[1, 2]")
        with pytest.raises(TypeError):
            await access.export_names_of("backend/list.json")

    async def test_dotted_module(self, access: LocalModuleAccess) -> None:
        dumps = await access.resolve_remote_value("json#dumps")
        assert dumps([1]) == "[1]"

    async def test_cached_until_mtime_changes(self, access: LocalModuleAccess, project: Path) -> None:
        first = await access.load("backend/api.py")
        assert await access.load("backend/api.py") is first

        path = project / "backend" / "api.py"
        path.write_text("VERSION = 4\n")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert await access.resolve_remote_value("backend/api.py#VERSION") == 4

    async def test_invalidate(self, access: LocalModuleAccess, project: Path) -> None:
        first = await access.load("backend/api.py")
        assert access.invalidate(project / "backend" / "api.py")
        assert not access.invalidate(project / "backend" / "api.py")
        assert await access.load("backend/api.py") is not first

    def test_locate(self, access: LocalModuleAccess, project: Path) -> None:
        assert access.locate("json") is None
        assert access.locate("backend/api.py") == (project / "backend" / "api.py").resolve()


class TestRemoteExport:
    async def test_call_sync_value(self, access: LocalModuleAccess) -> None:
        greet = RemoteExport("backend/api.py", "greet")
        with use_access(access):
            assert await greet("world") == "hello world"

    async def test_call_async_value(self, access: LocalModuleAccess) -> None:
        total = RemoteExport("backend/api.py", "total")
        with use_access(access):
            assert await total(2, 3) == 5

    async def test_resolve_with_explicit_access(self, access: LocalModuleAccess) -> None:
        version = RemoteExport("backend/api.py", "VERSION")
        assert await version.resolve(access) == 3
        assert version.path == "backend/api.py#VERSION"

    async def test_without_access(self) -> None:
        with pytest.raises(PerchError, match="use_access"):
            await RemoteExport("backend/api.py", "greet").resolve()

    def test_use_access_resets(self, access: LocalModuleAccess) -> None:
        with use_access(access):
            assert current_access() is access
        with pytest.raises(PerchError):
            current_access()
