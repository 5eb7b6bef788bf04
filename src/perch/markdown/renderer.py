"""Markdown content and its patitas renderer.

``Markdown`` is an entrypoint value: the resolver classifies it as text
content and the page renderer turns it into HTML. ``entrypoint.md``
files load as ``Markdown`` values.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

from perch.markdown.errors import MarkdownNotInstalledError

if TYPE_CHECKING:
    from patitas import Markdown as PatitasMarkdown


@dataclass(frozen=True, slots=True)
class Markdown:
    """Markdown source used as route content::

        entrypoint = {"/readme": Markdown("# Hello")}
    """

    source: str

    def to_html(self, renderer: MarkdownRenderer | None = None) -> str:
        return (renderer or default_renderer()).render(self.source)


class MarkdownRenderer:
    """Render Markdown source to HTML via patitas.

    Args:
        plugins: Patitas plugins to enable (default: all).
        highlight: Enable syntax highlighting for fenced code blocks.
    """

    def __init__(
        self,
        *,
        plugins: list[str] | None = None,
        highlight: bool = False,
    ) -> None:
        self._md: PatitasMarkdown = _get_markdown(plugins=plugins, highlight=highlight)

    def render(self, source: str) -> str:
        """Render Markdown source to an HTML string."""
        if not source:
            return ""
        return self._md(source)


@lru_cache(maxsize=1)
def default_renderer() -> MarkdownRenderer:
    return MarkdownRenderer()


def _get_markdown(
    *,
    plugins: list[str] | None,
    highlight: bool,
) -> PatitasMarkdown:
    """Create a patitas Markdown instance, raising a clear error if missing."""
    try:
        from patitas import Markdown as PatitasMarkdown
    except ImportError:
        msg = (
            "Markdown content requires 'patitas'. "
            "Install with: pip install perch[markdown]"
        )
        raise MarkdownNotInstalledError(msg) from None

    return PatitasMarkdown(plugins=plugins or ["all"], highlight=highlight)
