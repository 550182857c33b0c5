from __future__ import annotations

from copy import deepcopy
from typing import Any

from pymongo.errors import PyMongoError

from marketdash.core.constants import MAX_FEED_LIMIT
from marketdash.core.errors import FetchFailure, PersistenceFailure
from marketdash.infrastructure.persistence_clients import MongoClientManager


class NotificationRepository:
    def __init__(
        self,
        *,
        mongo_manager: MongoClientManager,
    ) -> None:
        self.mongo_manager = mongo_manager

    def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        collection = self._mongo_collection()
        if collection is None:
            raise PersistenceFailure("Notification store is unavailable")
        try:
            collection.insert_one(deepcopy(payload))
        except PyMongoError as exc:
            raise PersistenceFailure(f"Failed to save notification: {exc}") from exc
        return deepcopy(payload)

    def list_recent(self, limit: int = MAX_FEED_LIMIT) -> list[dict[str, Any]]:
        safe_limit = max(1, min(limit, MAX_FEED_LIMIT))
        collection = self._mongo_collection()
        if collection is None:
            raise FetchFailure("Notification store is unavailable")
        try:
            rows = list(collection.find({}).sort("createdAt", -1).limit(safe_limit))
        except PyMongoError as exc:
            raise FetchFailure(f"Failed to list notifications: {exc}") from exc
        output: list[dict[str, Any]] = []
        for row in rows:
            if isinstance(row, dict):
                output.append(self._normalize(row))
        return output

    def get(self, notification_id: str) -> dict[str, Any] | None:
        collection = self._mongo_collection()
        if collection is None:
            raise FetchFailure("Notification store is unavailable")
        try:
            row = collection.find_one({"id": notification_id})
        except PyMongoError as exc:
            raise FetchFailure(f"Failed to load notification {notification_id}: {exc}") from exc
        if not row:
            return None
        return self._normalize(row)

    def mark_read(self, notification_id: str) -> bool:
        """Flips a single unread record to read. Returns whether anything changed."""
        collection = self._mongo_collection()
        if collection is None:
            raise PersistenceFailure("Notification store is unavailable")
        try:
            result = collection.update_one(
                {"id": notification_id, "read": False},
                {"$set": {"read": True}},
            )
        except PyMongoError as exc:
            raise PersistenceFailure(f"Failed to mark notification {notification_id} read: {exc}") from exc
        return int(getattr(result, "modified_count", 0)) > 0

    def mark_all_read(self) -> int:
        collection = self._mongo_collection()
        if collection is None:
            raise PersistenceFailure("Notification store is unavailable")
        try:
            result = collection.update_many({"read": False}, {"$set": {"read": True}})
        except PyMongoError as exc:
            raise PersistenceFailure(f"Failed to mark notifications read: {exc}") from exc
        return int(getattr(result, "modified_count", 0))

    def count_unread(self) -> int:
        collection = self._mongo_collection()
        if collection is None:
            raise FetchFailure("Notification store is unavailable")
        try:
            return int(collection.count_documents({"read": False}))
        except PyMongoError as exc:
            raise FetchFailure(f"Failed to count unread notifications: {exc}") from exc

    def _normalize(self, row: dict[str, Any]) -> dict[str, Any]:
        payload = deepcopy(row)
        raw_id = payload.pop("_id", None)
        if not payload.get("id") and raw_id is not None:
            payload["id"] = str(raw_id)
        return payload

    def _mongo_collection(self) -> Any | None:
        database = self.mongo_manager.database()
        if database is None:
            return None
        return database["notifications"]
