"""Bounded-concurrency chunk processing with pause, resume, cancel and retry"""

from .chunks import Chunk, chunk_file, chunk_bytes, collect_chunks, calculate_file_hash
from .config import PipelineConfig, load_config
from .control import TaskToken, InterruptSignal, RetryPolicy, execute_with_retry
from .exceptions import PipelineError, TaskCancelledError, ChunkSourceError, ProcessorError
from .pipeline import ProcessController, process_chunks

__version__ = "1.0.0"

__all__ = [
    'Chunk',
    'chunk_file',
    'chunk_bytes',
    'collect_chunks',
    'calculate_file_hash',
    'PipelineConfig',
    'load_config',
    'TaskToken',
    'InterruptSignal',
    'RetryPolicy',
    'execute_with_retry',
    'PipelineError',
    'TaskCancelledError',
    'ChunkSourceError',
    'ProcessorError',
    'ProcessController',
    'process_chunks'
]
