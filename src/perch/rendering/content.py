"""Terminal content classification.

Once the resolver reaches a value that is not itself an entrypoint
layer, ``classify_content`` decides what kind of content it is. Each
kind has a fixed default render method.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from http import HTTPStatus
from pathlib import Path
from typing import Any

from perch.errors import HTTPError
from perch.http.response import Redirect, Response, StreamingResponse
from perch.markdown.renderer import Markdown
from perch.rendering.methods import RenderMethod
from perch.rendering.templates import Template


class ContentKind(Enum):
    MARKUP = "markup"
    TEXT = "text"
    RAW = "raw"
    SPECIAL = "special"
    SCALAR = "scalar"
    EMPTY = "empty"
    UNSUPPORTED = "unsupported"


# Default render method per kind; RAW is forced, not defaulted.
DEFAULT_METHODS: dict[ContentKind, RenderMethod] = {
    ContentKind.MARKUP: RenderMethod.BACKEND,
    ContentKind.TEXT: RenderMethod.BACKEND,
    ContentKind.RAW: RenderMethod.RAW_CONTENT,
    ContentKind.SPECIAL: RenderMethod.BACKEND,
    ContentKind.SCALAR: RenderMethod.BACKEND,
    ContentKind.EMPTY: RenderMethod.BACKEND,
    ContentKind.UNSUPPORTED: RenderMethod.BACKEND,
}


def classify_content(value: Any) -> ContentKind:
    """Classify a terminal value.

    ``bool`` is checked with the other scalars before ``str`` so it
    never falls through to text; ``Markup`` strings are markup because
    they carry ``__html__``.
    """
    match value:
        case None:
            return ContentKind.EMPTY
        case bytes() | bytearray() | memoryview() | Response() | StreamingResponse():
            return ContentKind.RAW
        case Redirect() | Path() | HTTPStatus() | BaseException():
            return ContentKind.SPECIAL
        case bool() | int() | float() | Decimal():
            return ContentKind.SCALAR
        case Template():
            return ContentKind.MARKUP
        case _ if hasattr(value, "__html__") or hasattr(value, "__perch_serialize__"):
            return ContentKind.MARKUP
        case str() | Markdown():
            return ContentKind.TEXT
        case list() | tuple():
            return ContentKind.MARKUP
        case _:
            return ContentKind.UNSUPPORTED


def special_status(value: Any) -> tuple[int, tuple[tuple[str, str], ...]]:
    """Status code and extra headers implied by a special value."""
    match value:
        case Redirect(url=url, status=status, headers=headers):
            return status, (("Location", url), *headers)
        case HTTPStatus():
            return int(value), ()
        case HTTPError(status=status, headers=headers):
            return status, headers
        case BaseException():
            return 500, ()
        case _:
            return 200, ()
