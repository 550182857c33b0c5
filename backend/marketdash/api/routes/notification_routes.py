from __future__ import annotations

import asyncio
from contextlib import suppress

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from marketdash.container import inbox_service, notification_broadcaster
from marketdash.core.errors import FetchFailure
from marketdash.infrastructure.logging import get_logger

router = APIRouter(prefix="/admin/notifications", tags=["admin-notifications"])
logger = get_logger(__name__)


@router.get("")
def list_notifications(limit: int = Query(default=50, ge=1, le=50)) -> dict[str, object]:
    return inbox_service.snapshot(limit=limit)


@router.get("/unread-count")
def unread_count() -> dict[str, object]:
    return {"unreadCount": inbox_service.unread_count()}


@router.post("/read-all")
def mark_all_read() -> dict[str, object]:
    return inbox_service.mark_all_read()


@router.post("/{notification_id}/read")
def mark_read(notification_id: str) -> dict[str, object]:
    return inbox_service.mark_read(notification_id)


@router.post("/{notification_id}/open")
def open_notification(notification_id: str) -> dict[str, object]:
    return inbox_service.open(notification_id)


async def _send_inbox(websocket: WebSocket, event: str) -> None:
    try:
        payload = await asyncio.to_thread(inbox_service.snapshot)
    except FetchFailure as exc:
        logger.warning("inbox_push_failed", error=str(exc))
        await websocket.send_json(
            {"type": "error", "payload": {"code": exc.code, "message": str(exc)}}
        )
        return
    await websocket.send_json({"type": "inbox", "event": event, "payload": payload})


@router.websocket("/ws")
async def notifications_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    async with notification_broadcaster.subscribe() as queue:

        async def push_loop() -> None:
            while True:
                event = await queue.get()
                await _send_inbox(websocket, str(event.get("type", "update")))

        await _send_inbox(websocket, "snapshot")
        push_task = asyncio.create_task(push_loop())
        try:
            while True:
                payload = await websocket.receive_json()
                msg_type = payload.get("type") if isinstance(payload, dict) else None
                if msg_type == "ping":
                    await websocket.send_json({"type": "pong", "payload": {}})
                elif msg_type == "refresh":
                    await _send_inbox(websocket, "refresh")
                else:
                    await websocket.send_json(
                        {
                            "type": "error",
                            "payload": {"code": "UNSUPPORTED_MESSAGE", "message": f"Unsupported message type: {msg_type}"},
                        }
                    )
        except WebSocketDisconnect:
            return
        finally:
            push_task.cancel()
            # A push that raced the disconnect ends the same way.
            with suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await push_task
