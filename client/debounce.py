"""
Async debouncer for search-as-you-type.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from config.settings import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """
    Call *callback* with the latest value once input has been quiet for
    *delay* seconds.  Every new value cancels the pending timer.
    """

    def __init__(self, callback: Callable[[T], Any], delay: float | None = None):
        self.callback = callback
        self.delay = config.search_debounce_seconds if delay is None else delay
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def __call__(self, value: T) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._fire(value))

    async def _fire(self, value: T) -> None:
        await asyncio.sleep(self.delay)
        result = self.callback(value)
        if inspect.isawaitable(result):
            await result

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending call, if any, to fire."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
