"""Markdown layer error hierarchy."""

from perch.errors import PerchError


class MarkdownError(PerchError):
    """Base for all perch.markdown errors."""


class MarkdownNotInstalledError(MarkdownError):
    """Raised when patitas is not installed."""
