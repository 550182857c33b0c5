from __future__ import annotations

import pytest
from fastapi import HTTPException

from marketdash.repositories.notification_repository import NotificationRepository
from marketdash.services.inbox_service import InboxService


def _record(index: int, *, read: bool = False) -> dict[str, object]:
    return {
        "id": f"notif_{index:03d}",
        "orderId": f"order_{index}",
        "orderNumber": str(1000 + index),
        "customerName": "Asha",
        "totalAmount": 120.0,
        "type": "new_order",
        "message": f"New order #{1000 + index} received",
        "read": read,
        "createdAt": f"2026-01-01T10:{index // 60:02d}:{index % 60:02d}+00:00",
    }


def _inbox(managers) -> InboxService:
    mongo_manager, _ = managers
    return InboxService(notification_repository=NotificationRepository(mongo_manager=mongo_manager))


def test_feed_is_newest_first_and_bounded_to_fifty(managers, mongo) -> None:
    mongo.db["notifications"].rows.extend(_record(index) for index in range(60))
    inbox = _inbox(managers)

    feed = inbox.feed()

    assert len(feed) == 50
    assert feed[0]["id"] == "notif_059"
    assert feed[-1]["id"] == "notif_010"
    assert len(inbox.feed(limit=500)) == 50
    assert len(inbox.feed(limit=5)) == 5


def test_unread_count_tracks_read_flags(managers, mongo) -> None:
    mongo.db["notifications"].rows.extend([_record(1), _record(2, read=True), _record(3)])
    inbox = _inbox(managers)

    assert inbox.unread_count() == 2
    assert inbox.snapshot()["unreadCount"] == 2


def test_mark_read_is_idempotent(managers, mongo) -> None:
    mongo.db["notifications"].rows.extend([_record(1), _record(2)])
    inbox = _inbox(managers)

    first = inbox.mark_read("notif_001")
    second = inbox.mark_read("notif_001")

    assert first["changed"] is True
    assert second["changed"] is False
    assert second["notification"]["read"] is True
    assert inbox.unread_count() == 1
    assert mongo.db["notifications"].calls["update_one"] == 1


def test_mark_read_unknown_notification_is_404(managers) -> None:
    with pytest.raises(HTTPException) as exc_info:
        _inbox(managers).mark_read("notif_missing")

    assert exc_info.value.status_code == 404


def test_open_marks_read_once_and_returns_target(managers, mongo) -> None:
    mongo.db["notifications"].rows.append(_record(7))
    inbox = _inbox(managers)

    opened = inbox.open("notif_007")
    reopened = inbox.open("notif_007")

    assert opened["orderId"] == "order_7"
    assert opened["changed"] is True
    assert reopened["changed"] is False
    assert mongo.db["notifications"].calls["update_one"] == 1


def test_mark_all_read(managers, mongo) -> None:
    mongo.db["notifications"].rows.extend([_record(1), _record(2, read=True), _record(3)])
    inbox = _inbox(managers)

    assert inbox.mark_all_read() == {"updated": 2}
    assert inbox.unread_count() == 0
    assert inbox.mark_all_read() == {"updated": 0}
