from __future__ import annotations

ORDER_STATUSES = ("pending", "confirmed", "preparing", "ready", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

NOTIFICATION_NEW_ORDER = "new_order"
NOTIFICATION_STATUS_UPDATE = "status_update"
NOTIFICATION_PAYMENT_UPDATE = "payment_update"
NOTIFICATION_TYPES = (
    NOTIFICATION_NEW_ORDER,
    NOTIFICATION_STATUS_UPDATE,
    NOTIFICATION_PAYMENT_UPDATE,
)

MAX_FEED_LIMIT = 50
