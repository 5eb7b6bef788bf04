"""Shared type aliases used across perch modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Error handler: receives (request, exc), either optional, returns an entrypoint
ErrorHandler: TypeAlias = Callable[..., Any]

# Context provider: receives the Context, returns data to share with the client
ContextProvider: TypeAlias = Callable[..., Any]
