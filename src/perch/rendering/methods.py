"""Render methods and render presets.

A ``RenderMethod`` says where content is produced and who owns it
afterwards. A ``RenderPreset`` pins a method to otherwise ambiguous
content::

    from perch.rendering import render_static

    entrypoint = {
        "/about": render_static(about_page),
        "/feed": feed_generator,          # defaults to BACKEND
    }

Choosing rules, applied by the resolver:

- The outermost explicit preset wins over every inner preset and over
  the content's own default.
- Raw content (bytes, responses) always renders as ``RAW_CONTENT``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RenderMethod(Enum):
    """How content for a route is produced and delivered."""

    STATIC = "static"
    """Fixed, cacheable markup without client-side reactivity."""

    BACKEND = "backend"
    """Computed per request on the server, sent as markup, no client takeover."""

    HYBRID = "hybrid"
    """Server-rendered markup that a client runtime hydrates afterwards."""

    DYNAMIC = "dynamic"
    """Assembled entirely on the client."""

    RAW_CONTENT = "raw_content"
    """An opaque byte stream or response that bypasses rendering."""

    @property
    def server_rendered(self) -> bool:
        return self in (RenderMethod.STATIC, RenderMethod.BACKEND, RenderMethod.HYBRID)

    @property
    def client_owned(self) -> bool:
        return self in (RenderMethod.HYBRID, RenderMethod.DYNAMIC)


@dataclass(frozen=True, slots=True)
class RenderPreset:
    """An explicit (render method, entrypoint) pair."""

    method: RenderMethod
    content: Any


def choose_method(
    fixed: RenderMethod | None,
    default: RenderMethod,
    *,
    forced: RenderMethod | None = None,
) -> RenderMethod:
    """Pick the render method for terminal content.

    *forced* (raw content) beats everything, then the outermost preset
    (*fixed*), then the content's *default*.
    """
    if forced is not None:
        return forced
    if fixed is not None:
        return fixed
    return default


def render_static(content: Any) -> RenderPreset:
    return RenderPreset(RenderMethod.STATIC, content)


def render_backend(content: Any) -> RenderPreset:
    return RenderPreset(RenderMethod.BACKEND, content)


def render_hybrid(content: Any) -> RenderPreset:
    return RenderPreset(RenderMethod.HYBRID, content)


def render_dynamic(content: Any) -> RenderPreset:
    return RenderPreset(RenderMethod.DYNAMIC, content)
