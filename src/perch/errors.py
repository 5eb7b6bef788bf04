"""Perch exception hierarchy.

Shared across routing, rendering, realms, and the request handler so
every module raises and catches the same types.
"""

from collections.abc import Iterable
from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when app configuration is invalid.

    Typically caught during ``App._freeze()`` at startup.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by entrypoints or the request handler. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no entrypoint produced content for the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class InvalidRouteError(PerchError, ValueError):
    """A route representation could not be parsed.

    Fatal to the single request (mapped to 400), never to the process.
    """


class UnresolvableRealmError(PerchError):
    """A module path lies outside every configured realm root."""

    def __init__(self, path: object, roots: Iterable[object] = ()) -> None:
        self.path = path
        self.roots = tuple(roots)
        listed = ", ".join(str(r) for r in self.roots) or "<none>"
        super().__init__(f"Cannot determine realm of {path}: not under any of {listed}")


class IllegalRealmImportError(PerchError):
    """An import crosses realms in a direction that is never allowed.

    Frontend modules cannot be imported from common or backend modules.
    Surfaced to the developer, never retried.
    """

    def __init__(self, importer: object, imported: object, importer_realm: str) -> None:
        self.importer = importer
        self.imported = imported
        self.importer_realm = importer_realm
        super().__init__(
            f"Frontend module {imported} cannot be imported from the {importer_realm} "
            f"module {importer}. Move the shared code into a common directory."
        )


class AmbiguousEntrypointError(PerchError):
    """More than one entrypoint file exists in a single directory."""

    def __init__(self, directory: object, candidates: Iterable[object]) -> None:
        self.directory = directory
        self.candidates = tuple(candidates)
        names = ", ".join(str(c) for c in self.candidates)
        super().__init__(f"Ambiguous entrypoint in {directory}: found {names}")


class ResolutionFailure(PerchError):  # noqa: N818
    """No entrypoint produced content for a route.

    Not fatal: callers fall back through the remaining entrypoints
    before showing a "no content" page.
    """

    def __init__(self, route: object, tried: Iterable[str] = ()) -> None:
        self.route = route
        self.tried = tuple(tried)
        where = " and ".join(self.tried) or "any entrypoint"
        super().__init__(f"Route {route} resolved to no content on the {where}")
