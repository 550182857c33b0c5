from __future__ import annotations

from typing import Any

from fastapi import HTTPException

from marketdash.core.constants import MAX_FEED_LIMIT
from marketdash.infrastructure.broadcaster import NotificationBroadcaster
from marketdash.infrastructure.logging import get_logger
from marketdash.repositories.notification_repository import NotificationRepository

logger = get_logger(__name__)


class InboxService:
    def __init__(
        self,
        *,
        notification_repository: NotificationRepository,
        broadcaster: NotificationBroadcaster | None = None,
        feed_limit: int = MAX_FEED_LIMIT,
    ) -> None:
        self.notification_repository = notification_repository
        self.broadcaster = broadcaster
        self.feed_limit = max(1, min(feed_limit, MAX_FEED_LIMIT))

    def feed(self, *, limit: int | None = None) -> list[dict[str, Any]]:
        safe_limit = self.feed_limit if limit is None else max(1, min(limit, self.feed_limit))
        return self.notification_repository.list_recent(limit=safe_limit)

    def unread_count(self) -> int:
        return self.notification_repository.count_unread()

    def snapshot(self, *, limit: int | None = None) -> dict[str, Any]:
        return {
            "notifications": self.feed(limit=limit),
            "unreadCount": self.unread_count(),
        }

    def mark_read(self, notification_id: str) -> dict[str, Any]:
        notification = self.notification_repository.get(notification_id)
        if notification is None:
            raise HTTPException(status_code=404, detail="Notification not found")
        if notification.get("read"):
            return {"notification": notification, "changed": False}

        changed = self.notification_repository.mark_read(notification_id)
        notification["read"] = True
        if changed:
            logger.info("notification_marked_read", notification_id=notification_id)
            self._publish({"type": "notification_read", "notificationId": notification_id})
        return {"notification": notification, "changed": changed}

    def mark_all_read(self) -> dict[str, Any]:
        updated = self.notification_repository.mark_all_read()
        if updated:
            logger.info("notifications_marked_read", count=updated)
            self._publish({"type": "notifications_read", "count": updated})
        return {"updated": updated}

    def open(self, notification_id: str) -> dict[str, Any]:
        """Drill-through: marks the record read, then hands back the order to navigate to."""
        result = self.mark_read(notification_id)
        notification = result["notification"]
        return {
            "orderId": notification.get("orderId"),
            "notification": notification,
            "changed": result["changed"],
        }

    def _publish(self, event: dict[str, Any]) -> None:
        if self.broadcaster is not None:
            self.broadcaster.publish(event)
