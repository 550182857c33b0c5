from __future__ import annotations

from copy import deepcopy
from typing import Any, Callable, Iterator

import pytest
from pymongo.errors import PyMongoError

from marketdash.container import container
from marketdash.infrastructure.persistence_clients import MongoClientManager, RedisClientManager


class _UpdateResult:
    def __init__(self, matched_count: int, modified_count: int) -> None:
        self.matched_count = matched_count
        self.modified_count = modified_count


class _FakeCursor(list[dict[str, Any]]):
    def sort(self, field: str, direction: int) -> "_FakeCursor":
        reverse = direction < 0
        return _FakeCursor(sorted(self, key=lambda row: str(row.get(field, "")), reverse=reverse))

    def limit(self, count: int) -> "_FakeCursor":
        return _FakeCursor(self[:count])


def _matches(row: dict[str, Any], filt: dict[str, Any]) -> bool:
    return all(row.get(key) == value for key, value in filt.items())


class _FakeCollection:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.fail_ops: set[str] = set()
        self.calls: dict[str, int] = {}

    def _track(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1
        if op in self.fail_ops:
            raise PyMongoError(f"{op} failed")

    def find(self, filt: dict[str, Any] | None = None) -> _FakeCursor:
        self._track("find")
        return _FakeCursor(deepcopy([row for row in self.rows if _matches(row, filt or {})]))

    def find_one(self, filt: dict[str, Any]) -> dict[str, Any] | None:
        self._track("find_one")
        for row in self.rows:
            if _matches(row, filt):
                return deepcopy(row)
        return None

    def insert_one(self, doc: dict[str, Any]) -> None:
        self._track("insert_one")
        self.rows.append(deepcopy(doc))

    def update_one(self, filt: dict[str, Any], update: dict[str, Any], upsert: bool = False) -> _UpdateResult:
        self._track("update_one")
        for row in self.rows:
            if _matches(row, filt):
                changes = update.get("$set", {})
                modified = any(row.get(key) != value for key, value in changes.items())
                row.update(deepcopy(changes))
                return _UpdateResult(1, 1 if modified else 0)
        return _UpdateResult(0, 0)

    def update_many(self, filt: dict[str, Any], update: dict[str, Any]) -> _UpdateResult:
        self._track("update_many")
        matched = [row for row in self.rows if _matches(row, filt)]
        for row in matched:
            row.update(deepcopy(update.get("$set", {})))
        return _UpdateResult(len(matched), len(matched))

    def count_documents(self, filt: dict[str, Any]) -> int:
        self._track("count_documents")
        return len([row for row in self.rows if _matches(row, filt)])


class _FakeMongoDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, _FakeCollection] = {}

    def __getitem__(self, name: str) -> _FakeCollection:
        if name not in self.collections:
            self.collections[name] = _FakeCollection()
        return self.collections[name]


class FakeMongoClient:
    def __init__(self) -> None:
        self.db = _FakeMongoDatabase()

    def get_default_database(self, default: str | None = None) -> _FakeMongoDatabase:
        return self.db

    def __getitem__(self, _name: str) -> _FakeMongoDatabase:
        return self.db


class FakeRedisClient:
    def __init__(self) -> None:
        self.store: dict[str, Any] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.store[key] = value

    def get(self, key: str) -> Any:
        return self.store.get(key)

    def delete(self, key: str) -> None:
        self.store.pop(key, None)


def make_order(order_id: str, *, created_at: str, **overrides: Any) -> dict[str, Any]:
    order = {
        "id": order_id,
        "orderNumber": f"ORD-{order_id}",
        "customerName": f"Customer {order_id}",
        "customerPhone": "+91 90000 00000",
        "deliveryAddress": "12 Market Road",
        "subtotal": 200.0,
        "deliveryFee": 20.0,
        "discountAmount": 0.0,
        "totalAmount": 220.0,
        "items": [
            {"productId": "prod_1", "productName": "Tomatoes", "quantity": 2, "unitPrice": 100.0, "totalPrice": 200.0}
        ],
        "notes": "",
        "paymentMethod": "cod",
        "paymentStatus": "pending",
        "status": "pending",
        "storeId": "store_1",
        "userId": "user_1",
        "createdAt": created_at,
    }
    order.update(overrides)
    return order


@pytest.fixture
def order_factory() -> Callable[..., dict[str, Any]]:
    return make_order


@pytest.fixture
def mongo() -> FakeMongoClient:
    return FakeMongoClient()


@pytest.fixture
def redis_client() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def managers(mongo: FakeMongoClient, redis_client: FakeRedisClient) -> tuple[MongoClientManager, RedisClientManager]:
    mongo_manager = MongoClientManager(uri="mongodb://db.internal:27017/marketplace", enabled=True)
    redis_manager = RedisClientManager(url="redis://cache.internal:6379/0", enabled=True)
    mongo_manager._client = mongo
    redis_manager._client = redis_client
    return mongo_manager, redis_manager


@pytest.fixture
def app_mongo(reset_container_state: None) -> FakeMongoClient:
    return container.mongo_manager.client


@pytest.fixture(autouse=True)
def reset_container_state() -> Iterator[None]:
    # The app container is module-global; give every test fresh fake stores and engine state.
    container.mongo_manager._client = FakeMongoClient()
    container.redis_manager._client = FakeRedisClient()
    container.order_poller.reset()
    container.store_names.clear()
    yield
    container.order_poller.reset()
    container.mongo_manager._client = None
    container.redis_manager._client = None
