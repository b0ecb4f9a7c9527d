"""Background popularity tracking decoupled from the search request path."""

import asyncio
import contextlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from food_search.services.food_cache import FoodCacheRepository

_logger = logging.getLogger(__name__)


class PopularityQueue(Protocol):
    """Accepts popularity increments without making the caller wait."""

    def submit(self, food_ids: Iterable[str]) -> None:
        """Queue one increment per food id."""


@dataclass
class AsyncioPopularityQueue(PopularityQueue):
    """Worker that drains increments from an asyncio queue.

    The worker starts on the first submission inside a running loop. Failed
    increments are logged and dropped; they never reach the submitter.
    """

    repository: FoodCacheRepository
    _queue: asyncio.Queue[str] | None = field(default=None, init=False, repr=False)
    _worker: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _loop: asyncio.AbstractEventLoop | None = field(
        default=None, init=False, repr=False
    )

    def submit(self, food_ids: Iterable[str]) -> None:
        """Queue increments and make sure the worker is running."""
        ids = [food_id for food_id in food_ids if food_id]
        if not ids:
            return
        queue = self._ensure_worker()
        for food_id in ids:
            queue.put_nowait(food_id)

    async def join(self) -> None:
        """Wait until every submitted increment has been attempted."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        """Drain pending increments and stop the worker."""
        await self.join()
        if self._worker is not None and self._loop is asyncio.get_running_loop():
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
        self._worker = None
        self._queue = None
        self._loop = None

    def _ensure_worker(self) -> asyncio.Queue[str]:
        loop = asyncio.get_running_loop()
        if self._queue is None or self._loop is not loop:
            self._queue = asyncio.Queue()
            self._worker = None
            self._loop = loop
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())
        return self._queue

    async def _run(self) -> None:
        queue = self._queue
        if queue is None:
            return
        while True:
            food_id = await queue.get()
            try:
                await asyncio.to_thread(self.repository.increment_popularity, food_id)
            except Exception:
                _logger.exception("Popularity update failed: food_id=%s", food_id)
            finally:
                queue.task_done()
