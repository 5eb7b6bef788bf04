"""Markdown content for perch via patitas.

Return ``Markdown(source)`` from an entrypoint, or drop an
``entrypoint.md`` file into a realm directory.

Requires ``patitas``::

    pip install perch[markdown]
"""

from perch.markdown.errors import MarkdownError, MarkdownNotInstalledError
from perch.markdown.renderer import Markdown, MarkdownRenderer, default_renderer

__all__ = [
    "Markdown",
    "MarkdownError",
    "MarkdownNotInstalledError",
    "MarkdownRenderer",
    "default_renderer",
]
