"""
storefront — inventory, carts, orders and checkout for a small online shop.

    from storefront import inventory  # Products and stock
    from storefront import cart       # Per-user persisted carts
    from storefront import orders     # Atomic order creation
    from storefront import checkout   # Payment-aware orchestration
    from storefront import auth       # Roles and request identity
"""

from storefront import db
from storefront import inventory
from storefront import cart
from storefront import orders
from storefront import auth
from storefront import checkout
from storefront._types import (
    Lazy,
    UserId,
    ProductId,
    OrderId,
    Cents,
)

__version__ = "0.1.0"

__all__ = (
    "db",
    "inventory",
    "cart",
    "orders",
    "auth",
    "checkout",
    "Lazy",
    "UserId",
    "ProductId",
    "OrderId",
    "Cents",
)
