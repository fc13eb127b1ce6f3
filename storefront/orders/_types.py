"""
Order types — immutable once written.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from storefront._types import Cents, OrderId, ProductId, UserId


@dataclass(frozen=True, slots=True)
class Order:
    id: OrderId
    user_id: UserId
    created_at: datetime
    total_cents: Cents
    payment_reference: str | None = None


@dataclass(frozen=True, slots=True)
class OrderLineItem:
    """
    Invoice line.

    Note: product_name / unit_price_cents are copies, so the invoice reads the
    same after the product is renamed, repriced or deleted.
    """

    order_id: OrderId
    product_id: ProductId
    product_name: str
    quantity: int
    unit_price_cents: Cents
    line_total_cents: Cents


@dataclass(frozen=True, slots=True)
class Invoice:
    order: Order
    items: tuple[OrderLineItem, ...]


__all__ = ("Order", "OrderLineItem", "Invoice")
