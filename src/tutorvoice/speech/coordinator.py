"""Request coalescing for identical in-flight work."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class InFlightCoordinator:
    """Runs at most one computation per key at a time.

    The first caller for a key starts ``factory()`` as a task; callers that
    arrive while it runs await the same task. Every caller waits through
    ``asyncio.shield`` so a caller that is cancelled or times out never
    cancels the shared work. The key is released when the task finishes,
    whether it succeeded or failed, so a later request starts fresh.

    Must be used from a single event loop.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def in_flight(self, key: str) -> bool:
        return key in self._tasks

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if not task.cancelled() and task.exception() is not None:
            # Retrieve the exception so orphaned failures are not reported
            # as "never retrieved" when every waiter has gone away
            logger.debug(f"In-flight work for {key[:12]} failed: {task.exception()!r}")

    async def run_exclusive(
        self, key: str, factory: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Run ``factory`` once for ``key`` and share the result.

        Args:
            key: Identity of the work (a cache key)
            factory: Zero-argument callable returning an awaitable

        Returns:
            The result of the shared computation

        Raises:
            Whatever the shared computation raised, to every waiter
        """
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda t: self._release(key, t))
            logger.debug(f"Started in-flight work for {key[:12]}")
        else:
            logger.debug(f"Joined in-flight work for {key[:12]}")

        return await asyncio.shield(task)
