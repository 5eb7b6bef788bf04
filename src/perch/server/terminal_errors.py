"""Terminal error formatting.

Structured, readable error output for the terminal, used wherever perch
logs an internal failure: the request boundary, SSE producers, and stub
regeneration.

For kida template errors the output wraps ``exc.format_compact()`` in a
banner with the request context. Other errors use a traceback verbosity
chosen by the ``PERCH_TRACEBACK`` environment variable (``compact``,
``full`` or ``minimal``).
"""

from __future__ import annotations

import logging
import os
import traceback as _traceback
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from perch.http.request import Request

logger = logging.getLogger("perch.server")

_BANNER_WIDTH = 65
_STDLIB_PREFIX = os.path.dirname(os.__file__)


def _is_kida_error(exc: BaseException) -> bool:
    """Check if an exception originates from the kida template engine."""
    module = type(exc).__module__ or ""
    return "kida" in module


def _is_app_frame(filename: str) -> bool:
    """True if the frame is from the application (not stdlib/site-packages)."""
    if "site-packages" in filename or filename.startswith("<"):
        return False
    return not filename.startswith(_STDLIB_PREFIX)


def format_template_error(exc: BaseException, request: Request | None = None) -> str:
    """Format a kida template error inside a banner."""
    parts = [f"-- Template Error {'-' * (_BANNER_WIDTH - 18)}"]
    format_compact = getattr(exc, "format_compact", None)
    parts.append(format_compact() if callable(format_compact) else str(exc))
    if request is not None:
        parts.append("")
        parts.append(f"  Route: {request.method} {request.path}")
    parts.append("-" * _BANNER_WIDTH)
    return "\n".join(parts)


def format_compact_traceback(exc: BaseException) -> str:
    """Error summary plus at most five application frames."""
    frames = _traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    app_frames = [f for f in frames if _is_app_frame(f.filename)]
    display_frames = app_frames or frames[-3:]

    parts = [f"{type(exc).__name__}: {exc}"]
    if display_frames:
        parts.append("  Trace (app frames):")
        for frame in display_frames[-5:]:
            parts.append(f"    {frame.filename}:{frame.lineno} in {frame.name}")
            if frame.line:
                parts.append(f"      {frame.line.strip()}")
    return "\n".join(parts)


def format_minimal_error(exc: BaseException) -> str:
    """One-line error summary."""
    frames = _traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    last = frames[-1] if frames else None
    location = f" at {last.filename}:{last.lineno}" if last else ""
    return f"{type(exc).__name__}{location}: {exc}"


def log_error(
    exc: BaseException,
    request: Request | None = None,
    *,
    prefix: str | None = None,
) -> None:
    """Log an internal error with the configured verbosity.

    Args:
        exc: The exception to report.
        request: The request that triggered it, when there is one.
        prefix: Overrides the first log line (e.g. ``"Stub regeneration failed"``).
    """
    if prefix is None:
        prefix = f"500 {request.method} {request.path}" if request is not None else "Server error"

    if _is_kida_error(exc):
        logger.error("%s\n%s", prefix, format_template_error(exc, request))
        return

    style = os.environ.get("PERCH_TRACEBACK", "compact").lower()
    if style == "full":
        logger.error("%s", prefix, exc_info=exc)
    elif style == "minimal":
        logger.error("%s: %s", prefix, format_minimal_error(exc))
    else:
        logger.error("%s\n%s", prefix, format_compact_traceback(exc))
