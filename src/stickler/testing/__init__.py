"""Test utilities for stickler applications.

    from stickler.testing import TestClient
"""

from stickler.testing.client import TestClient, TestResponse

__all__ = ["TestClient", "TestResponse"]
