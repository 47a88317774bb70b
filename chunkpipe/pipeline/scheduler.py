"""
pipeline/scheduler.py - Bounded-concurrency chunk scheduler

Sources are admitted in order. Each admitted source becomes one task that
awaits the chunk and runs the processor through the retry executor. Once
the in-flight set is full, admission waits for any one task to finish.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, Set, Union
import logging

from .controller import ProcessController
from ..chunks.aggregate import resolve_source
from ..chunks.models import Chunk
from ..control.retry import RetryPolicy, execute_with_retry
from ..control.token import InterruptSignal, TaskToken
from ..exceptions import TaskCancelledError

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 6

# Processors receive the interruption signal current at the start of each
# attempt, not the token itself. It fires on pause or cancel.
ChunkProcessor = Callable[[Chunk, InterruptSignal], Union[None, Awaitable[None]]]
ProgressCallback = Callable[[int, int], None]


class ChunkScheduler:
    """Runs one processing pass over a sequence of chunk sources"""

    def __init__(self, sources: Sequence[Awaitable[Chunk]], processor: ChunkProcessor,
                 controller: ProcessController, concurrency: int = DEFAULT_CONCURRENCY,
                 on_progress: Optional[ProgressCallback] = None,
                 policy: Optional[RetryPolicy] = None):
        self.sources = sources
        self.processor = processor
        self.controller = controller
        self.token: TaskToken = controller.token
        self.concurrency = concurrency
        self.on_progress = on_progress
        self.policy = policy
        self.in_flight: Set[asyncio.Task] = set()

    async def _process_chunk(self, index: int, source: Awaitable[Chunk]):
        chunk = await resolve_source(source, index)

        # The signal is read per attempt so attempts after a resume get a fresh one
        await execute_with_retry(
            lambda: self.processor(chunk, self.token.signal),
            self.token,
            self.policy
        )

        completed = self.controller.record_success()
        if completed is None:
            return

        logger.debug(f"Chunk {index} done ({completed}/{self.controller.total})")
        if self.on_progress:
            self.on_progress(completed, self.controller.total)

    async def _wait_any(self, cancel_waiter: asyncio.Future):
        """Wait until one in-flight task finishes or the run is cancelled"""
        done, _ = await asyncio.wait(
            self.in_flight | {cancel_waiter},
            return_when=asyncio.FIRST_COMPLETED
        )
        self.token.check_cancelled()

        for task in done:
            if task is cancel_waiter:
                continue
            self.in_flight.discard(task)
            task.result()

    async def run(self):
        total = self.controller.total
        cancel_waiter = asyncio.ensure_future(self.token.wait_cancelled())
        logger.info(f"Processing {total} chunks (concurrency {self.concurrency})")

        try:
            for index, source in enumerate(self.sources):
                self.token.check_cancelled()

                task = asyncio.ensure_future(self._process_chunk(index, source))
                self.in_flight.add(task)

                if len(self.in_flight) >= self.concurrency:
                    await self._wait_any(cancel_waiter)

            while self.in_flight:
                await self._wait_any(cancel_waiter)

            logger.info(f"Processed all {total} chunks")
        except TaskCancelledError:
            logger.info(f"Run cancelled after {self.controller.completed}/{total} chunks")
            raise
        except Exception as e:
            logger.error(f"Run failed after {self.controller.completed}/{total} chunks: {e}")
            raise
        finally:
            cancel_waiter.cancel()
            self.controller.settle()
            if self.in_flight:
                # Abandoned tasks stop at their next cancellation checkpoint
                self.token.cancel()
            self.token.cleanup()
            for task in self.in_flight:
                task.add_done_callback(_retrieve_abandoned)
            self.in_flight.clear()


def process_chunks(sources: Sequence[Awaitable[Chunk]], processor: ChunkProcessor,
                   concurrency: int = DEFAULT_CONCURRENCY,
                   on_progress: Optional[ProgressCallback] = None,
                   policy: Optional[RetryPolicy] = None) -> ProcessController:
    """
    Start processing chunk sources and return the run's controller.

    Must be called from a running event loop. Sources should be futures or
    tasks when other consumers (collect_chunks, calculate_file_hash) await
    the same sequence.
    """
    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError(f"concurrency must be an integer >= 1, got {concurrency!r}")

    sources = list(sources)
    controller = ProcessController(TaskToken(), len(sources))
    scheduler = ChunkScheduler(sources, processor, controller, concurrency,
                               on_progress, policy)
    controller.outcome = asyncio.get_running_loop().create_task(scheduler.run())
    return controller


def _retrieve_abandoned(task: asyncio.Task):
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"In-flight chunk task finished after settlement: {error!r}")
