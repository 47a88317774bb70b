"""Pytest configuration and fixtures"""

import asyncio
import hashlib
import shutil
import tempfile
from pathlib import Path

import pytest

from chunkpipe.chunks.models import Chunk
from chunkpipe.control.retry import RetryPolicy


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def fast_policy():
    """Retry policy with millisecond back-off"""
    return RetryPolicy(base_delay_ms=1, max_delay_ms=5)


def make_chunk(index: int, size: int = 4) -> Chunk:
    payload = bytes([index % 256]) * size
    return Chunk(
        index=index,
        start=index * size,
        end=(index + 1) * size,
        hash=hashlib.md5(payload).hexdigest(),
        payload=payload
    )


@pytest.fixture
def chunk_sources():
    """
    Factory for lists of chunk futures. Must be called inside a running loop.
    resolved=False leaves the futures pending for the test to resolve.
    """
    def factory(count: int, resolved: bool = True):
        loop = asyncio.get_running_loop()
        futures = [loop.create_future() for _ in range(count)]
        if resolved:
            for i, future in enumerate(futures):
                future.set_result(make_chunk(i))
        return futures
    return factory


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds, failing after timeout seconds"""
    async def waiter(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                pytest.fail("Condition not reached in time")
            await asyncio.sleep(0.001)
    return waiter


@pytest.fixture
def chunk_factory():
    """Build a Chunk with a deterministic payload"""
    return make_chunk
