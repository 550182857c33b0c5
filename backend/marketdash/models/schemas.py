from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

OrderStatus = Literal["pending", "confirmed", "preparing", "ready", "completed", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


class PaymentStatusUpdateRequest(BaseModel):
    paymentStatus: PaymentStatus
