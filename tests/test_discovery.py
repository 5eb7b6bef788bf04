"""Tests for perch.realms.discovery — entrypoint files in realm directories."""

from pathlib import Path

import pytest

from perch.errors import AmbiguousEntrypointError, ConfigurationError
from perch.markdown import Markdown
from perch.realms.discovery import discover_entrypoint, find_entrypoint_file, load_entrypoint


class TestFindEntrypointFile:
    def test_none(self, tmp_path: Path) -> None:
        assert find_entrypoint_file(tmp_path) is None

    def test_single(self, tmp_path: Path) -> None:
        (tmp_path / "entrypoint.md").write_text("# Hi")
        assert find_entrypoint_file(tmp_path) == tmp_path / "entrypoint.md"

    def test_ambiguous(self, tmp_path: Path) -> None:
        (tmp_path / "entrypoint.py").write_text("entrypoint = 'x'")
        (tmp_path / "entrypoint.json").write_text("{}")
        with pytest.raises(AmbiguousEntrypointError) as exc_info:
            find_entrypoint_file(tmp_path)
        assert exc_info.value.candidates == ("entrypoint.py", "entrypoint.json")


class TestLoadEntrypoint:
    def test_python_entrypoint_attribute(self, tmp_path: Path) -> None:
        path = tmp_path / "entrypoint.py"
        path.write_text("entrypoint = {'/': 'home'}\n")
        assert load_entrypoint(path) == {"/": "home"}

    def test_python_default_attribute(self, tmp_path: Path) -> None:
        path = tmp_path / "entrypoint.py"
        path.write_text("default = 'fallback'\n")
        assert load_entrypoint(path) == "fallback"

    def test_python_without_entrypoint(self, tmp_path: Path) -> None:
        path = tmp_path / "entrypoint.py"
        path.write_text("value = 1\n")
        with pytest.raises(ConfigurationError, match="neither"):
            load_entrypoint(path)

    def test_markdown(self, tmp_path: Path) -> None:
        path = tmp_path / "entrypoint.md"
        path.write_text("# Title\n")
        assert load_entrypoint(path) == Markdown("# Title\n")

    def test_json(self, tmp_path: Path) -> None:
        path = tmp_path / "entrypoint.json"
        path.write_text('{"/": "home", "/about": "about"}')
        assert load_entrypoint(path) == {"/": "home", "/about": "about"}

    def test_unsupported(self, tmp_path: Path) -> None:
        path = tmp_path / "entrypoint.txt"
        path.write_text("x")
        with pytest.raises(ConfigurationError):
            load_entrypoint(path)


class TestDiscoverEntrypoint:
    def test_first_directory_wins(self, tmp_path: Path) -> None:
        first, second = tmp_path / "one", tmp_path / "two"
        first.mkdir()
        second.mkdir()
        (second / "entrypoint.md").write_text("second")
        (first / "entrypoint.md").write_text("first")
        value, path = discover_entrypoint([first, second])
        assert value == Markdown("first")
        assert path == first / "entrypoint.md"

    def test_missing_directories_skipped(self, tmp_path: Path) -> None:
        (tmp_path / "entrypoint.json").write_text('{"/": "x"}')
        found = discover_entrypoint([tmp_path / "absent", tmp_path])
        assert found is not None
        assert found[0] == {"/": "x"}

    def test_nothing_found(self, tmp_path: Path) -> None:
        assert discover_entrypoint([tmp_path]) is None
