"""Invoke helpers — call sync or async callables uniformly.

Generators, route handlers, proxy hooks, and error handlers can all be
``def`` or ``async def``. This module keeps the sync/async check in
exactly one place.

Usage::

    from perch._internal.invoke import invoke

    result = await invoke(generator, context, params)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable."""
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def settle(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
