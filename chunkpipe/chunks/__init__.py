from .models import Chunk
from .producer import chunk_file, chunk_bytes, split_ranges, DEFAULT_CHUNK_SIZE
from .aggregate import collect_chunks, calculate_file_hash

__all__ = [
    'Chunk',
    'chunk_file',
    'chunk_bytes',
    'split_ranges',
    'DEFAULT_CHUNK_SIZE',
    'collect_chunks',
    'calculate_file_hash'
]
