"""Runtime side of generated stubs.

A stub module binds each exported name to a ``RemoteExport``. Calling
or resolving it goes through the value access installed for the current
task with ``use_access``.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from perch._internal.invoke import invoke
from perch.errors import PerchError
from perch.realms.access import RemoteValueAccess

access_var: ContextVar[RemoteValueAccess] = ContextVar("perch_value_access")


@contextmanager
def use_access(access: RemoteValueAccess) -> Iterator[RemoteValueAccess]:
    """Install *access* for stubs used inside the ``with`` block."""
    token = access_var.set(access)
    try:
        yield access
    finally:
        access_var.reset(token)


def current_access() -> RemoteValueAccess:
    try:
        return access_var.get()
    except LookupError:
        msg = "No value access installed; wrap stub usage in perch.realms.use_access()"
        raise PerchError(msg) from None


@dataclass(frozen=True, slots=True)
class RemoteExport:
    """Handle to one export of a module in another realm."""

    module: str
    name: str

    @property
    def path(self) -> str:
        return f"{self.module}#{self.name}"

    async def resolve(self, access: RemoteValueAccess | None = None) -> Any:
        return await (access or current_access()).resolve_remote_value(self.path)

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        value = await self.resolve()
        return await invoke(value, *args, **kwargs)
