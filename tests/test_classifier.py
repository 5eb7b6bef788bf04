"""Tests for perch.realms.classifier — realm roots and import legality."""

from pathlib import Path

import pytest

from perch.config import AppConfig
from perch.errors import IllegalRealmImportError, UnresolvableRealmError
from perch.realms import Realm, RealmLayout


@pytest.fixture
def layout(config: AppConfig) -> RealmLayout:
    return RealmLayout.from_config(config)


class TestClassify:
    def test_each_root(self, layout: RealmLayout, project: Path) -> None:
        assert layout.classify(project / "frontend" / "app.py") is Realm.FRONTEND
        assert layout.classify(project / "backend" / "api.py") is Realm.BACKEND
        assert layout.classify(project / "common" / "util.py") is Realm.COMMON

    def test_root_itself(self, layout: RealmLayout, project: Path) -> None:
        assert layout.classify(project / "backend") is Realm.BACKEND

    def test_outside_every_root(self, layout: RealmLayout, project: Path) -> None:
        with pytest.raises(UnresolvableRealmError) as exc_info:
            layout.classify(project / "scripts" / "tool.py")
        assert len(exc_info.value.roots) == 3

    def test_similar_prefix_is_not_inside(self, layout: RealmLayout, project: Path) -> None:
        with pytest.raises(UnresolvableRealmError):
            layout.classify(project / "backend_old" / "api.py")

    def test_deepest_root_wins(self, project: Path) -> None:
        config = AppConfig(
            project_dir=project,
            frontend_dirs=("backend/assets",),
            backend_dirs=("backend",),
            common_dirs=(),
        )
        layout = RealmLayout.from_config(config)
        assert layout.classify(project / "backend" / "assets" / "app.py") is Realm.FRONTEND
        assert layout.classify(project / "backend" / "api.py") is Realm.BACKEND

    def test_relative_dirs_resolve_against_project(self, layout: RealmLayout, project: Path) -> None:
        roots = {root for root, _ in layout.roots}
        assert project.resolve() / "frontend" in roots


class TestCheckImport:
    @pytest.mark.parametrize(
        ("importer", "imported", "expected"),
        [
            ("frontend", "frontend", (Realm.FRONTEND, Realm.FRONTEND)),
            ("frontend", "backend", (Realm.FRONTEND, Realm.BACKEND)),
            ("frontend", "common", (Realm.FRONTEND, Realm.COMMON)),
            ("common", "backend", (Realm.COMMON, Realm.BACKEND)),
            ("common", "common", (Realm.COMMON, Realm.COMMON)),
            ("backend", "common", (Realm.BACKEND, Realm.COMMON)),
            ("backend", "backend", (Realm.BACKEND, Realm.BACKEND)),
        ],
    )
    def test_allowed(self, layout: RealmLayout, project: Path, importer, imported, expected) -> None:
        result = layout.check_import(project / importer / "a.py", project / imported / "b.py")
        assert result == expected

    @pytest.mark.parametrize("importer", ["common", "backend"])
    def test_frontend_import_rejected(self, layout: RealmLayout, project: Path, importer: str) -> None:
        with pytest.raises(IllegalRealmImportError) as exc_info:
            layout.check_import(project / importer / "a.py", project / "frontend" / "ui.py")
        assert exc_info.value.importer_realm == importer
        assert "common directory" in str(exc_info.value)

    def test_unresolvable_importer(self, layout: RealmLayout, project: Path) -> None:
        with pytest.raises(UnresolvableRealmError):
            layout.check_import(project / "elsewhere.py", project / "backend" / "api.py")
