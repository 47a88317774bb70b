"""
chunks/producer.py - Split a resource into chunk futures

One future is created per chunk index before any reading starts. The
indices are then divided into contiguous runs, each served by one
background reader that resolves its futures in order, exactly once.
"""

import asyncio
import hashlib
import math
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional, Set, Tuple, Union
import logging

import aiofiles

from .models import Chunk
from ..exceptions import ChunkSourceError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB

# Reader tasks are only weakly referenced by the loop
_background_tasks: Set[asyncio.Task] = set()


def split_ranges(size: int, chunk_size: int) -> List[Tuple[int, int]]:
    """Contiguous [start, end) ranges covering size bytes"""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    return [(start, min(start + chunk_size, size))
            for start in range(0, size, chunk_size)]


def default_workers(total_chunks: int) -> int:
    return max(1, min(os.cpu_count() or 4, total_chunks))


def chunk_file(path: Union[str, Path], chunk_size: Optional[int] = None,
               workers: Optional[int] = None) -> List["asyncio.Future[Chunk]"]:
    """Chunk a file on disk, reading it with aiofiles"""
    path = Path(path)
    size = path.stat().st_size if path.is_file() else 0
    if not size:
        raise ValueError("Invalid or empty file")

    @asynccontextmanager
    async def open_reader():
        async with aiofiles.open(path, 'rb') as f:
            async def read(start: int, end: int) -> bytes:
                await f.seek(start)
                data = await f.read(end - start)
                if len(data) != end - start:
                    raise IOError(f"Short read at offset {start} of {path}")
                return data
            yield read

    logger.info(f"Chunking {path} ({size} bytes)")
    return _start(size, open_reader, chunk_size, workers)


def chunk_bytes(data: bytes, chunk_size: Optional[int] = None,
                workers: Optional[int] = None) -> List["asyncio.Future[Chunk]"]:
    """Chunk an in-memory buffer"""
    if not data:
        raise ValueError("Invalid or empty file")

    view = memoryview(data)

    @asynccontextmanager
    async def open_reader():
        async def read(start: int, end: int) -> bytes:
            return bytes(view[start:end])
        yield read

    return _start(len(data), open_reader, chunk_size, workers)


def _start(size: int, open_reader, chunk_size: Optional[int],
           workers: Optional[int]) -> List["asyncio.Future[Chunk]"]:
    chunk_size = chunk_size if chunk_size is not None else min(DEFAULT_CHUNK_SIZE, size)
    ranges = split_ranges(size, chunk_size)
    total = len(ranges)

    if workers is None:
        workers = default_workers(total)
    elif workers < 1:
        raise ValueError(f"workers must be positive, got {workers}")

    loop = asyncio.get_running_loop()
    futures = [loop.create_future() for _ in range(total)]

    per_worker = math.ceil(total / min(workers, total))
    for first in range(0, total, per_worker):
        last = min(first + per_worker, total)
        task = loop.create_task(_produce(futures, ranges, first, last, open_reader))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    logger.debug(f"Started {math.ceil(total / per_worker)} readers for {total} chunks")
    return futures


async def _produce(futures, ranges, first: int, last: int, open_reader):
    loop = asyncio.get_running_loop()
    index = first

    try:
        async with open_reader() as read:
            for index in range(first, last):
                future = futures[index]
                if future.done():
                    continue

                start, end = ranges[index]
                try:
                    data = await read(start, end)
                    digest = await loop.run_in_executor(None, _md5_hex, data)
                except Exception as e:
                    logger.error(f"Failed to produce chunk {index}: {e}")
                    _fail(future, index, e)
                    continue

                if not future.done():
                    future.set_result(Chunk(index=index, start=start, end=end,
                                            hash=digest, payload=data))
    except Exception as e:
        logger.error(f"Chunk reader for {first}-{last - 1} failed: {e}")
        for i in range(index, last):
            _fail(futures[i], i, e)


def _fail(future: asyncio.Future, index: int, error: Exception):
    if not future.done():
        failure = ChunkSourceError(f"Failed to produce chunk {index}: {error}", index=index)
        failure.__cause__ = error
        future.set_exception(failure)


def _md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()
