from __future__ import annotations

from copy import deepcopy
from typing import Any

from pymongo.errors import PyMongoError

from marketdash.core.errors import FetchFailure, PersistenceFailure
from marketdash.infrastructure.persistence_clients import MongoClientManager


class OrderRepository:
    def __init__(
        self,
        *,
        mongo_manager: MongoClientManager,
    ) -> None:
        self.mongo_manager = mongo_manager

    def list_recent(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Returns orders newest first.

        An unreachable store raises FetchFailure instead of returning an empty
        list, so callers can tell "no orders" apart from "no answer".
        """
        collection = self._orders_collection()
        if collection is None:
            raise FetchFailure("Order store is unavailable")
        try:
            cursor = collection.find({}).sort("createdAt", -1)
            if limit is not None:
                cursor = cursor.limit(max(1, int(limit)))
            rows = list(cursor)
        except PyMongoError as exc:
            raise FetchFailure(f"Failed to list orders: {exc}") from exc
        orders: list[dict[str, Any]] = []
        for row in rows:
            if isinstance(row, dict):
                orders.append(self._normalize(row))
        return orders

    def get(self, order_id: str) -> dict[str, Any] | None:
        collection = self._orders_collection()
        if collection is None:
            raise FetchFailure("Order store is unavailable")
        try:
            payload = collection.find_one({"id": order_id})
        except PyMongoError as exc:
            raise FetchFailure(f"Failed to load order {order_id}: {exc}") from exc
        if not payload:
            return None
        return self._normalize(payload)

    def update_fields(self, order_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
        collection = self._orders_collection()
        if collection is None:
            raise PersistenceFailure("Order store is unavailable")
        try:
            result = collection.update_one({"id": order_id}, {"$set": deepcopy(fields)})
            if getattr(result, "matched_count", 1) == 0:
                return None
            payload = collection.find_one({"id": order_id})
        except PyMongoError as exc:
            raise PersistenceFailure(f"Failed to update order {order_id}: {exc}") from exc
        if not payload:
            return None
        return self._normalize(payload)

    def _normalize(self, payload: dict[str, Any]) -> dict[str, Any]:
        order = deepcopy(payload)
        raw_id = order.pop("_id", None)
        if not order.get("id") and raw_id is not None:
            order["id"] = str(raw_id)
        return order

    def _orders_collection(self) -> Any | None:
        database = self.mongo_manager.database()
        if database is None:
            return None
        return database["orders"]
