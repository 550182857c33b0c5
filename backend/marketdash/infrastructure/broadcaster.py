from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from copy import deepcopy
from threading import Lock
from typing import Any, AsyncIterator


class NotificationBroadcaster:
    """Fans inbox events out to in-process subscribers.

    ``publish`` may be called from worker threads; delivery is handed to each
    subscriber's own event loop.
    """

    def __init__(self, *, max_queue_size: int = 100) -> None:
        self.max_queue_size = max(1, int(max_queue_size))
        self._lock = Lock()
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue[dict[str, Any]]]] = []

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: dict[str, Any]) -> int:
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for loop, queue in subscribers:
            if loop.is_closed():
                continue
            with suppress(RuntimeError):
                loop.call_soon_threadsafe(self._offer, queue, deepcopy(event))
                delivered += 1
        return delivered

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[dict[str, Any]]]:
        entry = (asyncio.get_running_loop(), asyncio.Queue(maxsize=self.max_queue_size))
        with self._lock:
            self._subscribers.append(entry)
        try:
            yield entry[1]
        finally:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

    @staticmethod
    def _offer(queue: asyncio.Queue[dict[str, Any]], event: dict[str, Any]) -> None:
        # Slow consumers lose the oldest event; every event triggers a full inbox refresh anyway.
        if queue.full():
            with suppress(asyncio.QueueEmpty):
                queue.get_nowait()
        queue.put_nowait(event)
