"""
Cart — per-user persisted cart, mirrored into the session.

    from storefront import cart

    service = cart.CartService(database)
    match await service.add(user_id, product_id, quantity=5):
        case Ok(change) if change.outcome is cart.CartOutcome.CAPPED:
            print(change.message)  # "Only 2 unit(s) of ..."
        case Ok(change):
            ...
        case Error(e):
            ...
"""

from storefront.cart._types import CartItem, CartOutcome, CartChange, cart_total
from storefront.cart._store import CartStore, load_items, replace_items, check_items
from storefront.cart._service import CartService
from storefront.cart._session import CartSession, SESSION_KEY

__all__ = (
    "CartItem",
    "CartOutcome",
    "CartChange",
    "cart_total",
    "CartStore",
    "load_items",
    "replace_items",
    "check_items",
    "CartService",
    "CartSession",
    "SESSION_KEY",
)
