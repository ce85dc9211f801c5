"""
Pytest fixtures and configuration for the SSE debugger tests.
"""
import asyncio
import io
import queue
import sys
from pathlib import Path

import httpx
import pytest

# Add project root and scripts/ to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(PROJECT_ROOT / "scripts"))

from sse_debugger.core.cache_store import CacheStore
from sse_debugger.core.input_reader import InputReader
from sse_debugger.models.request import RequestDescriptor


# --- Fixtures: Request data ---

@pytest.fixture
def descriptor():
    """Return a sample request descriptor."""
    return RequestDescriptor(
        url="https://example.com/sse",
        headers={"Authorization": "Bearer test-token"},
        body={"message": "ping", "stream": True},
    )


@pytest.fixture
def cache_store(tmp_path):
    """Return a CacheStore writing into a temp directory."""
    return CacheStore(tmp_path / "sse-cache.json")


# --- Fixtures: Scripted terminal ---

@pytest.fixture
def scripted_input():
    """Build an InputReader fed by the given lines; prompts go to a StringIO."""
    def _make(*lines):
        stream = io.StringIO("".join(f"{line}\n" for line in lines))
        return InputReader(stream=stream, output=io.StringIO())
    return _make


class LineFeed:
    """Blocking stdin stand-in; lines are fed by the test while the controller runs."""

    def __init__(self, timeout=10.0):
        self._queue = queue.Queue()
        self._timeout = timeout

    def feed(self, *lines):
        for line in lines:
            self._queue.put(f"{line}\n")

    def close_input(self):
        self._queue.put("")

    def readline(self, size=-1):
        return self._queue.get(timeout=self._timeout)


@pytest.fixture
def line_feed():
    """Return a LineFeed and an InputReader bound to it."""
    feed = LineFeed()
    return feed, InputReader(stream=feed, output=io.StringIO())


@pytest.fixture
def wait_until():
    """Return a coroutine function polling a predicate until it holds."""
    async def _wait(predicate, timeout=5.0):
        async def _poll():
            while not predicate():
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_poll(), timeout)
    return _wait


# --- Fixtures: Mock transport ---

class ChunkScript:
    """Async body for httpx.MockTransport that yields chunks on demand."""

    def __init__(self, chunks=(), error=None, hang=False):
        self.chunks = [c.encode("utf-8") if isinstance(c, str) else c for c in chunks]
        self.error = error
        self.hang = hang
        self.closed = False

    async def __aiter__(self):
        try:
            for chunk in self.chunks:
                yield chunk
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


@pytest.fixture
def chunk_script():
    """Return the ChunkScript factory."""
    return ChunkScript


@pytest.fixture
def mock_client():
    """Build an AsyncClient whose POSTs are answered by the given handler."""
    def _make(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return _make


@pytest.fixture
def streaming_handler():
    """Return a handler answering 200 text/event-stream with the given script."""
    def _make(script, requests=None):
        async def handler(request: httpx.Request) -> httpx.Response:
            if requests is not None:
                requests.append(request)
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=script,
            )
        return handler
    return _make


# --- Markers ---

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
