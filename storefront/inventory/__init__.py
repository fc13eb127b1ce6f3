"""
Inventory — products and quantity-on-hand.

    from storefront import inventory

    store = inventory.InventoryStore(database)
    result = await store.decrement_stock(product_id, 2)

    match result:
        case Ok(_):
            ...
        case Error(InsufficientStock(name)):
            ...
"""

from storefront.inventory._types import Product, ProductData, StockLevel
from storefront.inventory._store import (
    InventoryStore,
    find_product,
    stock_levels,
    decrement,
)

__all__ = (
    "Product",
    "ProductData",
    "StockLevel",
    "InventoryStore",
    "find_product",
    "stock_levels",
    "decrement",
)
