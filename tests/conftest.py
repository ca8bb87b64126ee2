"""
Pytest configuration and shared fixtures for corio_client tests.

This module provides:
- Sample image files generated with Pillow
- A recording sleep function so retry tests never wait
- ScriptedTransport: wraps another httpx transport, records every request
  and injects connection errors on a per-path schedule
- The in-process fake backend and a CorioClient wired to it
"""

import os
import sys
from typing import Dict, List, Sequence

import httpx
import pytest
from PIL import Image

# Add repository root and tests directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from corio_client.client import CorioClient
from corio_client.query_cache import QueryCache
from corio_client.retry_policy import RetryPolicy
from fake_backend import FakeBackend


BASE_URL = "http://testserver"


# =============================================================================
# TRANSPORT
# =============================================================================

class ScriptedTransport(httpx.AsyncBaseTransport):
    """
    Records requests and fails selected calls at the transport level.

    ``fail_calls("/api/upload/base64", [2, 3])`` makes the 2nd and 3rd POST
    to that path raise httpx.ConnectError (or the given ``error`` class); the
    failed attempts are still recorded, and never reach the wrapped transport.
    """

    def __init__(self, inner: httpx.AsyncBaseTransport):
        self.inner = inner
        self.requests: List[httpx.Request] = []
        self._failures: Dict[str, set] = {}
        self._errors: Dict[str, type] = {}
        self._calls: Dict[str, int] = {}

    def fail_calls(self, path: str, call_numbers: Sequence[int], error: type = httpx.ConnectError):
        self._failures[path] = set(call_numbers)
        self._errors[path] = error

    def calls_to(self, path: str, method: str = None) -> int:
        return sum(
            1 for r in self.requests
            if r.url.path == path and (method is None or r.method == method)
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        self._calls[path] = self._calls.get(path, 0) + 1
        if self._calls[path] in self._failures.get(path, ()):
            raise self._errors[path]("Connection refused", request=request)
        return await self.inner.handle_async_request(request)

    async def aclose(self):
        await self.inner.aclose()


class RecordingSleep:
    """Async stand-in for asyncio.sleep that only records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


# =============================================================================
# IMAGE FIXTURES
# =============================================================================

def make_image(path, color=(180, 120, 90), size=(64, 64), format="JPEG"):
    """Write a small solid-color image and return its path."""
    Image.new("RGB", size, color).save(path, format=format)
    return path


@pytest.fixture
def image_files(tmp_path):
    """Three distinct local JPEG captures."""
    return [
        str(make_image(tmp_path / f"capture_{i}.jpg", color=(150 + i * 20, 110, 80)))
        for i in range(3)
    ]


@pytest.fixture
def png_file(tmp_path):
    return str(make_image(tmp_path / "capture.png", format="PNG"))


# =============================================================================
# CLIENT FIXTURES
# =============================================================================

@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fake_backend():
    backend = FakeBackend()
    yield backend
    backend.dispose()


@pytest.fixture
def transport(fake_backend):
    return ScriptedTransport(httpx.ASGITransport(app=fake_backend.app))


@pytest.fixture
async def corio_client(transport, recording_sleep):
    """CorioClient against the fake backend; retry waits are recorded, not slept."""
    client = CorioClient(
        base_url=BASE_URL,
        token="test-token",
        transport=transport,
        sleep=recording_sleep,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=1.0),
        cache=QueryCache(),
    )
    yield client
    await client.close()
