"""
control/token.py - Pause/cancel coordination shared by the scheduler,
the retry executor and user processors
"""

import asyncio
from typing import Callable, List, Tuple
import logging

from ..exceptions import TaskCancelledError

logger = logging.getLogger(__name__)


class InterruptSignal:
    """
    One-shot interruption handle handed to processors.
    Once fired it stays fired; the token mints a fresh one on resume.
    """

    def __init__(self, generation: int = 0):
        self.generation = generation
        self._fired = False
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def fired(self) -> bool:
        return self._fired

    def add_callback(self, callback: Callable[[], None]):
        """Run callback when the signal fires (immediately if it already has)"""
        if self._fired:
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self):
        """Suspend until the signal fires"""
        await self._event.wait()

    def fire(self):
        if self._fired:
            return

        self._fired = True
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Interrupt callback failed: {e}", exc_info=True)

    def __repr__(self):
        return f"InterruptSignal(generation={self.generation}, fired={self._fired})"


class TaskToken:
    """
    Pause/cancel state machine for one processing run.

    Paused and cancelled are independent facets. Pausing fires the current
    interruption signal and wakes pending delays; resuming mints a new
    signal so work started afterwards does not observe the stale one.
    """

    def __init__(self):
        self._paused = False
        self._cancelled = False
        self._generation = 0
        self._signal = InterruptSignal(self._generation)
        self._resume_waiters: List[asyncio.Future] = []
        self._delays: List[Tuple[asyncio.TimerHandle, asyncio.Future]] = []
        self._cancel_waiters: List[asyncio.Future] = []

    @property
    def signal(self) -> InterruptSignal:
        """Interruption handle for work starting now"""
        return self._signal

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_delays(self) -> int:
        return len(self._delays)

    def is_paused(self) -> bool:
        return self._paused

    def is_cancelled(self) -> bool:
        return self._cancelled

    def check_cancelled(self):
        """Raise TaskCancelledError if the run has been cancelled"""
        if self._cancelled:
            raise TaskCancelledError()

    async def wait_while_paused(self):
        """Suspend until resumed (or cancelled); returns at once if not paused"""
        if not self._paused:
            return

        waiter = asyncio.get_running_loop().create_future()
        self._resume_waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._resume_waiters:
                self._resume_waiters.remove(waiter)

    async def delay(self, ms: float):
        """
        Sleep for ms milliseconds. Pause, resume and cancel all cut the
        sleep short.
        """
        if self._cancelled:
            return

        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        handle = loop.call_later(max(ms, 0) / 1000, _resolve, waiter)
        entry = (handle, waiter)
        self._delays.append(entry)
        try:
            await waiter
        finally:
            handle.cancel()
            if entry in self._delays:
                self._delays.remove(entry)

    async def wait_cancelled(self):
        """Suspend until cancel() is called"""
        if self._cancelled:
            return

        waiter = asyncio.get_running_loop().create_future()
        self._cancel_waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._cancel_waiters:
                self._cancel_waiters.remove(waiter)

    def pause(self):
        if self._paused:
            return

        self._paused = True
        self._signal.fire()
        self._clear_delays()
        logger.info("Run paused")

    def resume(self):
        if not self._paused:
            return

        self._paused = False
        self._generation += 1
        self._signal = InterruptSignal(self._generation)
        self._clear_delays()
        self._release(self._resume_waiters)
        logger.info(f"Run resumed (signal generation {self._generation})")

    def cancel(self):
        if self._cancelled:
            return

        self._cancelled = True
        self._signal.fire()
        self._clear_delays()
        self._paused = False
        self._release(self._resume_waiters)
        self._release(self._cancel_waiters)
        logger.info("Run cancelled")

    def cleanup(self):
        """Drop residual state once the run has settled"""
        self._paused = False
        self._clear_delays()
        self._release(self._resume_waiters)

    def _clear_delays(self):
        delays, self._delays = self._delays, []
        for handle, waiter in delays:
            handle.cancel()
            _resolve(waiter)

    @staticmethod
    def _release(waiters: List[asyncio.Future]):
        pending = list(waiters)
        waiters.clear()
        for waiter in pending:
            _resolve(waiter)


def _resolve(waiter: asyncio.Future):
    if not waiter.done():
        waiter.set_result(None)
