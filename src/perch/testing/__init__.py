"""Test utilities for perch applications::

    from perch.testing import TestClient
"""

from perch.testing.client import TestClient
from perch.testing.sse import SSETestResult, parse_sse_frames

__all__ = ["SSETestResult", "TestClient", "parse_sse_frames"]
