from __future__ import annotations

import asyncio
from threading import Lock

from marketdash.core.errors import LookupNotFound
from marketdash.infrastructure.logging import get_logger
from marketdash.repositories.store_repository import StoreRepository

logger = get_logger(__name__)


class StoreNameCache:
    def __init__(self, *, store_repository: StoreRepository) -> None:
        self.store_repository = store_repository
        self._names: dict[str, str] = {}
        self._lock = Lock()
        self.lookups = 0

    def peek(self, store_id: str | None) -> str | None:
        if not store_id:
            return None
        with self._lock:
            return self._names.get(store_id)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._names)

    def clear(self) -> None:
        with self._lock:
            self._names.clear()
            self.lookups = 0

    async def resolve(self, store_id: str | None) -> str | None:
        """Returns the store's display name, or None when it cannot be resolved.

        Failures are not cached, so the next call for the same id looks up again.
        Two concurrent misses may both hit the repository; the first name stored wins.
        """
        if not store_id:
            return None
        cached = self.peek(store_id)
        if cached is not None:
            return cached

        with self._lock:
            self.lookups += 1
        try:
            store = await asyncio.to_thread(self.store_repository.get, store_id)
        except LookupNotFound as exc:
            logger.warning("store_name_lookup_failed", store_id=store_id, error=str(exc))
            return None

        name = str(store.get("name") or "").strip()
        if not name:
            logger.warning("store_name_missing", store_id=store_id)
            return None
        with self._lock:
            return self._names.setdefault(store_id, name)
