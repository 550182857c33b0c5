from __future__ import annotations

from typing import Any

from marketdash.core.constants import (
    NOTIFICATION_NEW_ORDER,
    NOTIFICATION_PAYMENT_UPDATE,
    NOTIFICATION_STATUS_UPDATE,
    NOTIFICATION_TYPES,
)
from marketdash.core.errors import PersistenceFailure
from marketdash.core.utils import generate_id, iso_now
from marketdash.infrastructure.broadcaster import NotificationBroadcaster
from marketdash.infrastructure.logging import get_logger
from marketdash.repositories.notification_repository import NotificationRepository

logger = get_logger(__name__)


class NotificationService:
    """Persists one notification record per triggering action.

    Records are append-only: nothing here updates or deduplicates an existing
    record, and a failed write is raised to the caller without retrying.
    """

    def __init__(
        self,
        *,
        notification_repository: NotificationRepository,
        broadcaster: NotificationBroadcaster | None = None,
    ) -> None:
        self.notification_repository = notification_repository
        self.broadcaster = broadcaster

    def emit(
        self,
        order: dict[str, Any],
        notification_type: str,
        message: str,
        *,
        store_name: str | None = None,
    ) -> dict[str, Any]:
        if notification_type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {notification_type}")

        payload = {
            "id": generate_id("notif"),
            "orderId": str(order.get("id", "")),
            "orderNumber": str(order.get("orderNumber", "")),
            "customerName": str(order.get("customerName", "")),
            "totalAmount": float(order.get("totalAmount") or 0.0),
            "storeName": store_name,
            "type": notification_type,
            "message": message,
            "read": False,
            "createdAt": iso_now(),
        }
        try:
            record = self.notification_repository.create(payload)
        except PersistenceFailure as exc:
            logger.error(
                "notification_emit_failed",
                type=notification_type,
                order_id=payload["orderId"],
                error=str(exc),
            )
            raise

        logger.info(
            "notification_emitted",
            notification_id=record["id"],
            type=notification_type,
            order_number=record["orderNumber"],
        )
        if self.broadcaster is not None:
            self.broadcaster.publish({"type": "notification_created", "notification": record})
        return record

    def notify_new_order(self, order: dict[str, Any], *, store_name: str | None = None) -> dict[str, Any]:
        return self.emit(
            order,
            NOTIFICATION_NEW_ORDER,
            f"New order #{order.get('orderNumber', '')} received",
            store_name=store_name,
        )

    def notify_status_update(self, order: dict[str, Any], status: str) -> dict[str, Any]:
        return self.emit(
            order,
            NOTIFICATION_STATUS_UPDATE,
            f"Order #{order.get('orderNumber', '')} status updated to {status}",
        )

    def notify_payment_update(self, order: dict[str, Any], payment_status: str) -> dict[str, Any]:
        return self.emit(
            order,
            NOTIFICATION_PAYMENT_UPDATE,
            f"Order #{order.get('orderNumber', '')} payment status updated to {payment_status}",
        )
