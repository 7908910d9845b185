from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Awaitable, Callable, TypeVar

from docsearch.core.errors import SearchTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_timeout(aw: Awaitable[T], timeout: float, what: str) -> T:
    """
    Await with a deadline; a miss becomes SearchTimeoutError so the caller
    can move on to the next tier.
    """
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        raise SearchTimeoutError(f"{what} timed out after {timeout:g} seconds.")


class TaskExecutor(ABC):
    """Where a scoring task runs: submit(fn, *args) -> result."""

    name: str = "executor"

    @abstractmethod
    async def submit(self, fn: Callable[..., T], *args: Any) -> T: ...

    def recycle(self) -> None:
        """Start fresh for new work; tasks already submitted still complete."""
        return None

    def shutdown(self) -> None:
        return None


class InlineTaskExecutor(TaskExecutor):
    """Runs the task directly on the calling coroutine."""

    name = "inline"

    async def submit(self, fn: Callable[..., T], *args: Any) -> T:
        return fn(*args)


class ThreadTaskExecutor(TaskExecutor):
    """
    Background thread pool so scoring large documents never blocks the event loop.
    The pool is created lazily; recycle() swaps in a fresh one for new work.
    """

    name = "thread"

    def __init__(self, max_workers: int):
        self.max_workers = max_workers
        self._pool: ThreadPoolExecutor | None = None

    def _ensure_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="docsearch-score"
            )
        return self._pool

    async def submit(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._ensure_pool(), fn, *args)

    def recycle(self) -> None:
        if self._pool is not None:
            # queued futures of running searches keep running on the old pool
            self._pool.shutdown(wait=False)
            self._pool = None
            logger.info("Background scoring pool recycled")

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None
            logger.info("Background scoring pool shut down")
