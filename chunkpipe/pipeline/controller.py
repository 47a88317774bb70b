"""External handle on a processing run"""

import asyncio
from typing import Optional
import logging

from ..control.token import TaskToken

logger = logging.getLogger(__name__)


class ProcessController:
    """
    Pause, resume or cancel a run and await its outcome.

    The outcome resolves to None once every chunk succeeded, or raises the
    failure that ended the run (TaskCancelledError after cancel()).
    """

    def __init__(self, token: TaskToken, total: int):
        self._token = token
        self._total = total
        self._completed = 0
        self._settled = False
        self.outcome: Optional[asyncio.Task] = None

    @property
    def token(self) -> TaskToken:
        return self._token

    @property
    def total(self) -> int:
        return self._total

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def settled(self) -> bool:
        return self._settled

    def pause(self):
        if not self._settled:
            self._token.pause()

    def resume(self):
        if not self._settled:
            self._token.resume()

    def cancel(self):
        if self._settled:
            logger.debug("cancel() ignored, run already settled")
            return
        self._token.cancel()

    async def wait(self):
        """Await the outcome"""
        return await self.outcome

    def __await__(self):
        return self.outcome.__await__()

    def record_success(self) -> Optional[int]:
        """
        Count one finished chunk. Returns the new total, or None once the
        run is cancelled or settled and the counter is frozen.
        """
        if self._settled or self._token.is_cancelled():
            return None
        self._completed += 1
        return self._completed

    def settle(self):
        self._settled = True

    def __repr__(self):
        state = "settled" if self._settled else "running"
        return f"ProcessController({self._completed}/{self._total}, {state})"
