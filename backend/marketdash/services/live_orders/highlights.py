from __future__ import annotations

import asyncio
from threading import RLock
from time import monotonic
from typing import Callable, Iterable

HIGHLIGHT_WINDOW_SECONDS = 5.0


class HighlightTracker:
    """Marks order ids as fresh for a fixed window.

    Each id owns its own one-shot timer. Marking an id again cancels its timer
    and restarts the window; a timer only ever removes the id it was armed for.
    A new batch from the poller replaces the whole set via ``replace_batch``.
    """

    def __init__(
        self,
        *,
        window_seconds: float = HIGHLIGHT_WINDOW_SECONDS,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._deadlines: dict[str, float] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._lock = RLock()

    def mark_fresh(self, ids: Iterable[str]) -> float:
        loop = asyncio.get_running_loop()
        deadline = self._clock() + self.window_seconds
        with self._lock:
            for order_id in ids:
                previous = self._timers.pop(order_id, None)
                if previous is not None:
                    previous.cancel()
                self._deadlines[order_id] = deadline
                self._timers[order_id] = loop.call_later(
                    self.window_seconds, self._expire, order_id, deadline
                )
        return deadline

    def replace_batch(self, ids: Iterable[str]) -> float:
        """Makes ``ids`` the whole fresh set: earlier batches lose their highlight now."""
        batch = set(ids)
        with self._lock:
            for order_id in [order_id for order_id in self._deadlines if order_id not in batch]:
                self._deadlines.pop(order_id, None)
                handle = self._timers.pop(order_id, None)
                if handle is not None:
                    handle.cancel()
            return self.mark_fresh(batch)

    def is_fresh(self, order_id: str) -> bool:
        with self._lock:
            deadline = self._deadlines.get(order_id)
        return deadline is not None and self._clock() < deadline

    def fresh_ids(self) -> frozenset[str]:
        now = self._clock()
        with self._lock:
            return frozenset(order_id for order_id, deadline in self._deadlines.items() if now < deadline)

    def close(self) -> None:
        with self._lock:
            for handle in self._timers.values():
                handle.cancel()
            self._timers.clear()
            self._deadlines.clear()

    def _expire(self, order_id: str, deadline: float) -> None:
        with self._lock:
            if self._deadlines.get(order_id) != deadline:
                return
            self._deadlines.pop(order_id, None)
            self._timers.pop(order_id, None)
