from __future__ import annotations

import asyncio

import pytest
from fastapi import HTTPException

from marketdash.core.errors import PersistenceFailure
from marketdash.repositories.notification_repository import NotificationRepository
from marketdash.repositories.order_repository import OrderRepository
from marketdash.repositories.store_repository import StoreRepository
from marketdash.services.live_orders.highlights import HighlightTracker
from marketdash.services.live_orders.poller import OrderPoller
from marketdash.services.live_orders.store_names import StoreNameCache
from marketdash.services.notification_service import NotificationService
from marketdash.services.order_service import OrderService


@pytest.fixture
def service(managers) -> OrderService:
    mongo_manager, redis_manager = managers
    order_repository = OrderRepository(mongo_manager=mongo_manager)
    notification_service = NotificationService(
        notification_repository=NotificationRepository(mongo_manager=mongo_manager)
    )
    poller = OrderPoller(
        order_repository=order_repository,
        store_names=StoreNameCache(
            store_repository=StoreRepository(mongo_manager=mongo_manager, redis_manager=redis_manager)
        ),
        highlights=HighlightTracker(),
        notification_service=notification_service,
    )
    return OrderService(
        order_repository=order_repository,
        notification_service=notification_service,
        order_poller=poller,
    )


@pytest.fixture
def seeded(mongo, order_factory):
    mongo.db["orders"].rows.extend(
        [
            order_factory("ord_1", created_at="2026-01-01T10:00:00+00:00"),
            order_factory("ord_2", created_at="2026-01-01T10:00:05+00:00", status="ready", paymentStatus="paid"),
        ]
    )
    return mongo


def test_status_update_writes_and_emits_one_notification(service: OrderService, seeded) -> None:
    result = service.update_status(order_id="ord_1", status="confirmed")

    assert result["changed"] is True
    assert result["order"]["status"] == "confirmed"
    assert result["notificationError"] is None
    notifications = seeded.db["notifications"].rows
    assert len(notifications) == 1
    assert notifications[0]["type"] == "status_update"
    assert notifications[0]["message"] == "Order #ORD-ord_1 status updated to confirmed"
    assert notifications[0]["read"] is False
    assert seeded.db["orders"].rows[0]["status"] == "confirmed"


def test_status_update_is_not_echoed_by_the_next_poll(service: OrderService, seeded) -> None:
    poller = service.order_poller

    async def scenario() -> None:
        await poller.run_cycle()
        await asyncio.to_thread(service.update_status, order_id="ord_1", status="preparing")
        await poller.run_cycle()
        await poller.drain()
        poller.highlights.close()

    asyncio.run(scenario())
    types = [row["type"] for row in seeded.db["notifications"].rows]
    assert types == ["status_update"]
    listed = {order["id"]: order for order in service.list_orders()["orders"]}
    assert listed["ord_1"]["status"] == "preparing"


def test_setting_the_current_value_is_a_no_op(service: OrderService, seeded) -> None:
    result = service.update_payment_status(order_id="ord_2", payment_status="paid")

    assert result["changed"] is False
    assert result["notification"] is None
    assert seeded.db["orders"].calls.get("update_one", 0) == 0
    assert seeded.db["notifications"].rows == []


def test_payment_update_emits_payment_notification(service: OrderService, seeded) -> None:
    result = service.update_payment_status(order_id="ord_1", payment_status="refunded")

    assert result["order"]["paymentStatus"] == "refunded"
    assert result["notification"]["type"] == "payment_update"
    assert result["notification"]["message"] == "Order #ORD-ord_1 payment status updated to refunded"
    assert result["notification"]["storeName"] is None


def test_failed_write_raises_and_emits_nothing(service: OrderService, seeded) -> None:
    seeded.db["orders"].fail_ops.add("update_one")

    with pytest.raises(PersistenceFailure):
        service.update_status(order_id="ord_1", status="cancelled")

    assert seeded.db["orders"].rows[0]["status"] == "pending"
    assert seeded.db["notifications"].rows == []


def test_failed_notification_is_reported_without_undoing_the_write(service: OrderService, seeded) -> None:
    seeded.db["notifications"].fail_ops.add("insert_one")

    result = service.update_status(order_id="ord_1", status="ready")

    assert result["changed"] is True
    assert result["notification"] is None
    assert "insert_one failed" in result["notificationError"]
    assert seeded.db["orders"].rows[0]["status"] == "ready"


def test_rejects_unknown_values(service: OrderService, seeded) -> None:
    with pytest.raises(HTTPException) as status_error:
        service.update_status(order_id="ord_1", status="shipped")
    with pytest.raises(HTTPException) as payment_error:
        service.update_payment_status(order_id="ord_1", payment_status="settled")

    assert status_error.value.status_code == 400
    assert payment_error.value.status_code == 400
    assert seeded.db["orders"].calls.get("find_one", 0) == 0


def test_missing_order_is_not_found(service: OrderService, seeded) -> None:
    with pytest.raises(HTTPException) as exc_info:
        service.update_status(order_id="ord_404", status="confirmed")

    assert exc_info.value.status_code == 404
    assert seeded.db["notifications"].rows == []


def test_list_orders_filters_the_last_snapshot(service: OrderService, seeded) -> None:
    poller = service.order_poller

    async def scenario() -> None:
        await poller.run_cycle()
        await poller.drain()

    asyncio.run(scenario())
    everything = service.list_orders()
    paid = service.list_orders(payment_status="paid")
    pending = service.list_orders(status="pending")

    assert [order["id"] for order in everything["orders"]] == ["ord_2", "ord_1"]
    assert everything["lastUpdatedAt"] is not None
    assert [order["id"] for order in paid["orders"]] == ["ord_2"]
    assert [order["id"] for order in pending["orders"]] == ["ord_1"]
