from __future__ import annotations

from typing import Any, Callable

from fastapi import HTTPException

from marketdash.core.constants import ORDER_STATUSES, PAYMENT_STATUSES
from marketdash.core.errors import PersistenceFailure
from marketdash.infrastructure.logging import get_logger
from marketdash.repositories.order_repository import OrderRepository
from marketdash.services.live_orders.poller import OrderPoller
from marketdash.services.notification_service import NotificationService

logger = get_logger(__name__)


class OrderService:
    def __init__(
        self,
        *,
        order_repository: OrderRepository,
        notification_service: NotificationService,
        order_poller: OrderPoller,
    ) -> None:
        self.order_repository = order_repository
        self.notification_service = notification_service
        self.order_poller = order_poller

    def list_orders(
        self,
        *,
        status: str | None = None,
        payment_status: str | None = None,
    ) -> dict[str, Any]:
        orders = self.order_poller.orders_view()
        if status:
            orders = [order for order in orders if order.get("status") == status]
        if payment_status:
            orders = [order for order in orders if order.get("paymentStatus") == payment_status]
        return {
            "orders": orders,
            "lastUpdatedAt": self.order_poller.last_updated_at,
        }

    def update_status(self, *, order_id: str, status: str) -> dict[str, Any]:
        if status not in ORDER_STATUSES:
            raise HTTPException(status_code=400, detail=f"Unsupported order status: {status}")
        return self._transition(
            order_id=order_id,
            field="status",
            value=status,
            notify=self.notification_service.notify_status_update,
        )

    def update_payment_status(self, *, order_id: str, payment_status: str) -> dict[str, Any]:
        if payment_status not in PAYMENT_STATUSES:
            raise HTTPException(status_code=400, detail=f"Unsupported payment status: {payment_status}")
        return self._transition(
            order_id=order_id,
            field="paymentStatus",
            value=payment_status,
            notify=self.notification_service.notify_payment_update,
        )

    def _transition(
        self,
        *,
        order_id: str,
        field: str,
        value: str,
        notify: Callable[[dict[str, Any], str], dict[str, Any]],
    ) -> dict[str, Any]:
        order = self.order_repository.get(order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="Order not found")
        if order.get(field) == value:
            return {"order": order, "changed": False, "notification": None, "notificationError": None}

        # A failed write propagates as PersistenceFailure; nothing is emitted and the old value stands.
        updated = self.order_repository.update_fields(order_id, {field: value})
        if updated is None:
            raise HTTPException(status_code=404, detail="Order not found")
        logger.info(
            "order_field_updated",
            order_id=order_id,
            field=field,
            previous=order.get(field),
            value=value,
        )

        notification: dict[str, Any] | None = None
        notification_error: str | None = None
        try:
            notification = notify(updated, value)
        except PersistenceFailure as exc:
            notification_error = str(exc)
        return {
            "order": updated,
            "changed": True,
            "notification": notification,
            "notificationError": notification_error,
        }
