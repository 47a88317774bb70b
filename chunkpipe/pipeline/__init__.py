from .controller import ProcessController
from .scheduler import ChunkScheduler, process_chunks, DEFAULT_CONCURRENCY

__all__ = [
    'ProcessController',
    'ChunkScheduler',
    'process_chunks',
    'DEFAULT_CONCURRENCY'
]
