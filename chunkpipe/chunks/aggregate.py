"""Order-preserving consumers of a chunk source sequence"""

import asyncio
import hashlib
from typing import Awaitable, List, Sequence
import logging

from .models import Chunk
from ..exceptions import ChunkSourceError

logger = logging.getLogger(__name__)


async def resolve_source(source: Awaitable[Chunk], index: int) -> Chunk:
    """Await one chunk source, reporting producer failures as ChunkSourceError"""
    try:
        return await source
    except ChunkSourceError:
        raise
    except Exception as e:
        raise ChunkSourceError(f"Chunk source {index} failed: {e}", index=index) from e


async def collect_chunks(sources: Sequence[Awaitable[Chunk]]) -> List[Chunk]:
    """
    Await every source and return the chunks in source order,
    whatever order they resolved in
    """
    return list(await asyncio.gather(
        *(resolve_source(source, i) for i, source in enumerate(sources))
    ))


async def calculate_file_hash(sources: Sequence[Awaitable[Chunk]]) -> str:
    """
    Whole-resource MD5 built from the per-chunk hashes in index order.
    The chunk bytes are not re-read.
    """
    chunks = await collect_chunks(sources)

    hasher = hashlib.md5()
    for chunk in chunks:
        hasher.update(chunk.hash.encode('utf-8'))

    digest = hasher.hexdigest()
    logger.debug(f"Hashed {len(chunks)} chunks: {digest}")
    return digest
