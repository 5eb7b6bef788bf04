"""Tests for perch.markdown — patitas rendering and Markdown routes."""

import sys

import pytest

from perch import App, AppConfig
from perch.errors import PerchError
from perch.markdown import Markdown, MarkdownError, MarkdownNotInstalledError, MarkdownRenderer
from perch.testing import TestClient

# ── MarkdownRenderer ─────────────────────────────────────────────────────


class TestMarkdownRenderer:
    """The renderer wrapper over patitas."""

    def test_heading(self) -> None:
        html = MarkdownRenderer().render("# Hello")
        assert "<h1" in html
        assert "Hello" in html

    def test_empty(self) -> None:
        assert MarkdownRenderer().render("") == ""

    def test_to_html(self) -> None:
        assert "<em>" in Markdown("*soft*").to_html()


# ── Error Handling ───────────────────────────────────────────────────────


class TestErrorHandling:
    def test_hierarchy(self) -> None:
        assert issubclass(MarkdownError, PerchError)
        assert issubclass(MarkdownNotInstalledError, MarkdownError)

    def test_missing_patitas(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "patitas", None)
        with pytest.raises(MarkdownNotInstalledError, match="pip install perch\\[markdown\\]"):
            MarkdownRenderer()


# ── Markdown routes ──────────────────────────────────────────────────────


class TestMarkdownPages:
    async def test_markdown_route(self, config: AppConfig) -> None:
        app = App(config, backend={"/readme": Markdown("# Read me")})
        async with TestClient(app) as client:
            response = await client.get("/readme")
        assert response.status == 200
        assert "<h1" in response.text
        assert "Read me" in response.text
