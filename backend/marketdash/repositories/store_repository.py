from __future__ import annotations

import json
from copy import deepcopy
from typing import Any

from pymongo.errors import PyMongoError

from marketdash.core.errors import LookupNotFound
from marketdash.infrastructure.logging import get_logger
from marketdash.infrastructure.persistence_clients import MongoClientManager, RedisClientManager

logger = get_logger(__name__)


class StoreRepository:
    def __init__(
        self,
        *,
        mongo_manager: MongoClientManager,
        redis_manager: RedisClientManager,
        cache_ttl_seconds: int = 3600,
    ) -> None:
        self.mongo_manager = mongo_manager
        self.redis_manager = redis_manager
        self.cache_ttl_seconds = cache_ttl_seconds

    def get(self, store_id: str) -> dict[str, Any]:
        cached = self._read_from_redis(store_id)
        if cached is not None:
            return cached

        collection = self._stores_collection()
        if collection is None:
            raise LookupNotFound(f"Store lookup unavailable for {store_id}")
        try:
            payload = collection.find_one({"id": store_id})
        except PyMongoError as exc:
            raise LookupNotFound(f"Store lookup failed for {store_id}: {exc}") from exc
        if not payload or not isinstance(payload, dict):
            raise LookupNotFound(f"Store {store_id} not found")
        payload = deepcopy(payload)
        payload.pop("_id", None)
        payload.setdefault("id", store_id)
        self._write_to_redis(payload)
        return payload

    def _redis_client(self) -> Any | None:
        return self.redis_manager.client

    def _read_from_redis(self, store_id: str) -> dict[str, Any] | None:
        client = self._redis_client()
        if client is None:
            return None
        try:
            raw = client.get(f"store:{store_id}")
        except Exception as exc:
            logger.warning("store_cache_read_failed", store_id=store_id, error=str(exc))
            return None
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        return payload if isinstance(payload, dict) else None

    def _write_to_redis(self, store: dict[str, Any]) -> None:
        client = self._redis_client()
        if client is None:
            return
        try:
            client.set(f"store:{store['id']}", json.dumps(store, default=str), ex=self.cache_ttl_seconds)
        except Exception as exc:
            logger.warning("store_cache_write_failed", store_id=store.get("id"), error=str(exc))

    def _stores_collection(self) -> Any | None:
        database = self.mongo_manager.database()
        if database is None:
            return None
        return database["stores"]
