"""Markup serialisation collaborator.

Perch does not build DOM trees itself. Anything that can turn itself
into HTML is markup content: objects with ``__html__()`` (kida
``Markup``, components from other libraries) or, when they want to know
how they are being rendered, ``__perch_serialize__(options)``.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Protocol

from perch.rendering.methods import RenderMethod


@dataclass(frozen=True, slots=True)
class SerializeOptions:
    """How markup is being serialised.

    Attributes:
        inject_standalone_js: The page will run client code, so nodes
            may emit their standalone scripts.
        allow_ignore_functions: Client functions may be left out because
            a client runtime hydrates the page.
        lang: Content language.
    """

    inject_standalone_js: bool = False
    allow_ignore_functions: bool = False
    lang: str = "en"

    @classmethod
    def for_method(cls, method: RenderMethod, lang: str = "en") -> "SerializeOptions":
        return cls(
            inject_standalone_js=method is not RenderMethod.STATIC,
            allow_ignore_functions=method is RenderMethod.HYBRID,
            lang=lang,
        )


class Serializer(Protocol):
    def __call__(self, node: Any, options: SerializeOptions) -> str: ...


def serialize(node: Any, options: SerializeOptions) -> str:
    """Serialise a markup node (or a list of them) to an HTML string."""
    match node:
        case None:
            return ""
        case _ if hasattr(node, "__perch_serialize__"):
            return node.__perch_serialize__(options)
        case _ if hasattr(node, "__html__"):
            return node.__html__()
        case list() | tuple():
            return "".join(serialize(child, options) for child in node)
        case _:
            return escape(str(node))
