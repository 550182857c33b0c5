from __future__ import annotations

import asyncio

from fastapi import APIRouter, Query

from marketdash.container import order_poller, order_service
from marketdash.models.schemas import (
    OrderStatus,
    OrderStatusUpdateRequest,
    PaymentStatus,
    PaymentStatusUpdateRequest,
)

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


@router.get("")
def list_orders(
    status: OrderStatus | None = Query(default=None),
    payment_status: PaymentStatus | None = Query(default=None, alias="paymentStatus"),
) -> dict[str, object]:
    return order_service.list_orders(status=status, payment_status=payment_status)


@router.get("/poller")
def poller_status() -> dict[str, object]:
    return {"poller": order_poller.status()}


@router.post("/refresh")
async def refresh_orders() -> dict[str, object]:
    result = await order_poller.refresh_now()
    return {
        "refreshed": result is not None and result.ok,
        "newOrderIds": sorted(result.new_order_ids) if result is not None else [],
        "error": result.error if result is not None else None,
        "poller": order_poller.status(),
    }


@router.patch("/{order_id}/status")
async def update_order_status(order_id: str, payload: OrderStatusUpdateRequest) -> dict[str, object]:
    result = await asyncio.to_thread(order_service.update_status, order_id=order_id, status=payload.status)
    if result["changed"]:
        await order_poller.refresh_now()
    return result


@router.patch("/{order_id}/payment-status")
async def update_payment_status(order_id: str, payload: PaymentStatusUpdateRequest) -> dict[str, object]:
    result = await asyncio.to_thread(
        order_service.update_payment_status,
        order_id=order_id,
        payment_status=payload.paymentStatus,
    )
    if result["changed"]:
        await order_poller.refresh_now()
    return result
