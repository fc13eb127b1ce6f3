"""
Persistence — schema, engine and transactions.

    from storefront import db

    database = await db.create_database("sqlite+aiosqlite:///./shop.db")
    async with database.transaction() as session:
        ...
    await database.dispose()
"""

from storefront.db._tables import (
    Base,
    UserTable,
    ProductTable,
    CartItemTable,
    OrderTable,
    OrderItemTable,
)
from storefront.db._engine import Database, create_database

__all__ = (
    "Base",
    "UserTable",
    "ProductTable",
    "CartItemTable",
    "OrderTable",
    "OrderItemTable",
    "Database",
    "create_database",
)
