"""
Orders — immutable order + line-item records.

    from storefront import orders

    engine = orders.OrderEngine(database)
    match await engine.create_order_from_cart(user_id, items):
        case Ok(order_id):
            ...
        case Error(InsufficientStock(name)):
            ...
"""

from storefront.orders._types import Order, OrderLineItem, Invoice
from storefront.orders._engine import OrderEngine, OrderDraft

__all__ = (
    "Order",
    "OrderLineItem",
    "Invoice",
    "OrderEngine",
    "OrderDraft",
)
