from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SaveQueue:
    """Runs submitted saves one at a time, in submission order.

    A save starts only after the previous one has settled. A failed save is
    logged and re-raised to its own submitter; it neither blocks nor fails the
    saves queued behind it, and nothing is retried.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._lock = asyncio.Lock()

    async def submit(self, action: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            try:
                return await action()
            except Exception as e:
                logger.error(f"Queued save failed ({self.name}): {e}")
                raise


class SaveQueueRegistry:
    """One SaveQueue per session key (user id, or "local" for the local backend)."""

    def __init__(self) -> None:
        self._queues: dict[str, SaveQueue] = {}
        self._lock = threading.Lock()

    def get(self, key: str | None) -> SaveQueue:
        name = (key or "").strip() or "local"
        with self._lock:
            queue = self._queues.get(name)
            if queue is None:
                queue = SaveQueue(name)
                self._queues[name] = queue
            return queue

    def discard(self, key: str | None) -> None:
        name = (key or "").strip() or "local"
        with self._lock:
            self._queues.pop(name, None)
