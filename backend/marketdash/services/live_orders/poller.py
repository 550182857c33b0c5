from __future__ import annotations

import asyncio
from contextlib import suppress
from copy import deepcopy
from dataclasses import dataclass
from functools import partial
from typing import Any, Coroutine

from marketdash.core.errors import FetchFailure, PersistenceFailure
from marketdash.core.utils import iso_now
from marketdash.infrastructure.logging import get_logger
from marketdash.repositories.order_repository import OrderRepository
from marketdash.services.live_orders.differ import SnapshotState, diff_new_order_ids, order_ids
from marketdash.services.live_orders.highlights import HighlightTracker
from marketdash.services.live_orders.store_names import StoreNameCache
from marketdash.services.notification_service import NotificationService

logger = get_logger(__name__)


@dataclass(frozen=True)
class CycleResult:
    ok: bool
    new_order_ids: frozenset[str] = frozenset()
    announced: tuple[str, ...] = ()
    error: str | None = None


def _discard_result(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()


class OrderPoller:
    """Re-fetches the order collection on a fixed-rate timeline.

    Only this object replaces the snapshot, and only after a fetch completes.
    Store-name lookups and new-order notifications run as detached tasks.
    """

    def __init__(
        self,
        *,
        order_repository: OrderRepository,
        store_names: StoreNameCache,
        highlights: HighlightTracker,
        notification_service: NotificationService,
        interval_seconds: float = 5.0,
        fetch_timeout_seconds: float = 10.0,
    ) -> None:
        self.order_repository = order_repository
        self.store_names = store_names
        self.highlights = highlights
        self.notification_service = notification_service
        self.interval_seconds = max(0.01, float(interval_seconds))
        self.fetch_timeout_seconds = max(0.01, float(fetch_timeout_seconds))
        self._task: asyncio.Task[None] | None = None
        self._detached: set[asyncio.Task[Any]] = set()
        self._reset_state()

    def _reset_state(self) -> None:
        self._snapshot = SnapshotState.initial()
        self._orders: list[dict[str, Any]] = []
        self._seen: set[str] = set()
        self._pending_store_ids: set[str] = set()
        self._cycle_running = False
        self.cycles = 0
        self.failed_cycles = 0
        self.skipped_ticks = 0
        self.lost_notifications = 0
        self.abandoned_fetches = 0
        self.last_updated_at: str | None = None
        self.last_error: str | None = None

    def reset(self) -> None:
        """Forgets every observed order; the next cycle is a bootstrap cycle again."""
        self.highlights.close()
        self._reset_state()

    @property
    def snapshot(self) -> SnapshotState:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("order_poller_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if self._detached:
            await asyncio.wait(list(self._detached), timeout=self.fetch_timeout_seconds)
        self.highlights.close()
        logger.info("order_poller_stopped", cycles=self.cycles, failed_cycles=self.failed_cycles)

    async def drain(self) -> None:
        while self._detached:
            await asyncio.gather(*list(self._detached), return_exceptions=True)

    async def refresh_now(self) -> CycleResult | None:
        """On-demand cycle that also waits for the store names and announcements it started."""
        result = await self.run_cycle()
        if result is not None and result.ok:
            await self.drain()
        return result

    async def run_cycle(self) -> CycleResult | None:
        """Runs one fetch-and-reconcile pass, or returns None when one is already in flight."""
        if self._cycle_running:
            self.skipped_ticks += 1
            logger.info("order_poll_tick_skipped", skipped_ticks=self.skipped_ticks)
            return None
        self._cycle_running = True
        try:
            return await self._cycle()
        finally:
            self._cycle_running = False

    def orders_view(self) -> list[dict[str, Any]]:
        view: list[dict[str, Any]] = []
        for order in self._orders:
            item = deepcopy(order)
            item["storeName"] = self.store_names.peek(order.get("storeId"))
            item["isNew"] = self.highlights.is_fresh(str(order.get("id", "")))
            view.append(item)
        return view

    def status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "bootstrapped": self._snapshot.bootstrapped,
            "intervalSeconds": self.interval_seconds,
            "cycles": self.cycles,
            "failedCycles": self.failed_cycles,
            "skippedTicks": self.skipped_ticks,
            "lostNotifications": self.lost_notifications,
            "abandonedFetches": self.abandoned_fetches,
            "knownOrders": len(self._snapshot.order_ids),
            "lastUpdatedAt": self.last_updated_at,
            "lastError": self.last_error,
        }

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            try:
                await self.run_cycle()
            except Exception:
                self.failed_cycles += 1
                logger.exception("order_poll_crashed")
            next_tick += self.interval_seconds
            now = loop.time()
            while next_tick <= now:
                self.skipped_ticks += 1
                logger.info("order_poll_tick_skipped", skipped_ticks=self.skipped_ticks)
                next_tick += self.interval_seconds
            await asyncio.sleep(next_tick - now)

    async def _cycle(self) -> CycleResult:
        try:
            orders = await self._fetch_orders()
        except FetchFailure as exc:
            self.failed_cycles += 1
            self.last_error = str(exc)
            logger.warning("order_poll_failed", error=str(exc), failed_cycles=self.failed_cycles)
            return CycleResult(ok=False, error=str(exc))

        previous = self._snapshot
        new_ids = diff_new_order_ids(previous.order_ids, orders, bootstrapped=previous.bootstrapped)
        announce: dict[str, dict[str, Any]] = {}
        for order in orders:
            order_id = str(order.get("id", ""))
            if order_id in new_ids and order_id not in self._seen:
                announce.setdefault(order_id, order)
        self._seen.update(order_ids(orders))

        self._schedule_store_names(orders)
        for order in announce.values():
            self._spawn(self._announce(order), kind="announce", ref=order.get("id"))
        if new_ids:
            self.highlights.replace_batch(new_ids)

        self._snapshot = previous.replaced_with(orders)
        self._orders = orders
        self.cycles += 1
        self.last_error = None
        self.last_updated_at = iso_now()
        logger.info(
            "order_poll_completed",
            orders=len(orders),
            new_orders=len(new_ids),
            bootstrap=not previous.bootstrapped,
        )
        return CycleResult(ok=True, new_order_ids=new_ids, announced=tuple(sorted(announce)))

    async def _fetch_orders(self) -> list[dict[str, Any]]:
        loop = asyncio.get_running_loop()
        future = loop.create_task(asyncio.to_thread(self.order_repository.list_recent))
        future.add_done_callback(_discard_result)
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=self.fetch_timeout_seconds)
        except asyncio.TimeoutError as exc:
            # The worker thread keeps running until the driver timeout; its result is dropped.
            self.abandoned_fetches += 1
            raise FetchFailure(f"Order fetch timed out after {self.fetch_timeout_seconds}s") from exc

    def _schedule_store_names(self, orders: list[dict[str, Any]]) -> None:
        store_ids = {str(order["storeId"]) for order in orders if order.get("storeId")}
        for store_id in store_ids:
            if store_id in self._pending_store_ids or self.store_names.peek(store_id) is not None:
                continue
            self._pending_store_ids.add(store_id)
            self._spawn(self._resolve_store_name(store_id), kind="store_name", ref=store_id)

    async def _resolve_store_name(self, store_id: str) -> None:
        try:
            await self.store_names.resolve(store_id)
        finally:
            self._pending_store_ids.discard(store_id)

    async def _announce(self, order: dict[str, Any]) -> None:
        store_name = await self.store_names.resolve(order.get("storeId"))
        try:
            await asyncio.to_thread(self.notification_service.notify_new_order, order, store_name=store_name)
        except PersistenceFailure as exc:
            self.lost_notifications += 1
            logger.warning("new_order_notification_lost", order_id=order.get("id"), error=str(exc))

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, kind: str, ref: Any = None) -> None:
        task = asyncio.create_task(coro)
        self._detached.add(task)
        task.add_done_callback(partial(self._detached_done, kind=kind, ref=ref))

    def _detached_done(self, task: asyncio.Task[Any], *, kind: str, ref: Any) -> None:
        self._detached.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if kind == "announce":
            self.lost_notifications += 1
        logger.error("detached_task_failed", kind=kind, ref=ref, error=str(exc), exc_info=exc)
