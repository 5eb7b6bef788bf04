"""Stub module source, rendered with kida.

A runtime stub binds every requested export of a remote module to a
``RemoteExport`` handle. Interface modules (JSON) also get a ``.pyi``
declaration listing the same names with best-effort types.
"""

from __future__ import annotations

import keyword
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from kida import DictLoader, Environment

RUNTIME_TEMPLATE = "runtime.py"
DECLARATION_TEMPLATE = "declaration.pyi"

STUB_TEMPLATES: dict[str, str] = {
    RUNTIME_TEMPLATE: """\
# Generated by perch for {{ module }}. Do not edit.
from perch.realms.runtime import RemoteExport

__all__ = [{{ exported }}]
{% for entry in entries %}
{% if entry.missing %}
# warning: {{ entry.name }} is not exported by {{ module }}
{{ entry.name }} = None
{% else %}
{{ entry.name }} = RemoteExport({{ module_literal }}, {{ entry.literal }})
{% end %}
{% end %}
""",
    DECLARATION_TEMPLATE: """\
# Generated by perch for {{ module }}. Do not edit.
from collections.abc import Callable
from typing import Any

{% for entry in entries %}
{{ entry.name }}: {{ entry.type }}
{% end %}
""",
}


@dataclass(frozen=True, slots=True)
class StubEntry:
    name: str
    literal: str
    missing: bool = False
    type: str = "Any"


def declaration_type(value: Any) -> str:
    """Best-effort annotation for an exported value."""
    match value:
        case None:
            return "None"
        case bool():
            return "bool"
        case int():
            return "int"
        case float():
            return "float"
        case str():
            return "str"
        case list() | tuple():
            return "list[Any]"
        case dict():
            return "dict[str, Any]"
        case _ if callable(value):
            return "Callable[..., Any]"
        case _:
            return "Any"


def bindable(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


class StubRenderer:
    """Render runtime stubs and declarations for a module."""

    __slots__ = ("env",)

    def __init__(self) -> None:
        self.env = Environment(
            loader=DictLoader(STUB_TEMPLATES),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def runtime_stub(
        self,
        module: str,
        names: Iterable[str],
        available: frozenset[str] | None = None,
    ) -> str:
        """Source of the runtime stub for *module*.

        Names missing from *available* are bound to ``None`` with a
        warning comment. Names that are not valid identifiers cannot be
        bound and are left out.
        """
        entries = [
            StubEntry(
                name=name,
                literal=repr(name),
                missing=available is not None and name not in available,
            )
            for name in sorted(set(names))
            if bindable(name)
        ]
        return self.env.get_template(RUNTIME_TEMPLATE).render(
            {
                "module": module,
                "module_literal": repr(module),
                "exported": ", ".join(entry.literal for entry in entries),
                "entries": entries,
            }
        )

    def declaration_stub(
        self,
        module: str,
        names: Iterable[str],
        values: Mapping[str, Any],
    ) -> str:
        """Source of the ``.pyi`` declaration for an interface module.

        ``default`` is the whole interface object.
        """
        entries = []
        for name in sorted(set(names)):
            if not bindable(name):
                continue
            if name == "default":
                annotation = "dict[str, Any]"
            else:
                annotation = declaration_type(values.get(name)) if name in values else "None"
            entries.append(StubEntry(name=name, literal=repr(name), type=annotation))
        return self.env.get_template(DECLARATION_TEMPLATE).render(
            {"module": module, "entries": entries}
        )
