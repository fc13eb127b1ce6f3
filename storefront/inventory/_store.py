"""
Inventory store — products and quantity-on-hand.

All methods return Result for explicit error handling. Stock only ever goes
down through ``decrement_stock``: one conditional UPDATE, never read-then-write.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, cast

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import ProductId
from storefront.db import Database, ProductTable
from storefront.errors import (
    InsufficientStock,
    NotFound,
    PersistenceError,
    ShopError,
    ValidationError,
)
from storefront.inventory._types import Product, ProductData, StockLevel

logger = logging.getLogger(__name__)


def _to_product(row: ProductTable) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        unit_price_cents=row.price_cents,
        quantity_on_hand=row.quantity,
        image_ref=row.image,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Session-level primitives — usable inside someone else's transaction
# ═══════════════════════════════════════════════════════════════════════════════

async def find_product(session: AsyncSession, product_id: ProductId) -> Product | None:
    row = await session.get(ProductTable, product_id)
    return _to_product(row) if row is not None else None


async def stock_levels(
    session: AsyncSession,
    product_ids: Iterable[ProductId],
) -> dict[ProductId, StockLevel]:
    """Current quantity for each existing product; missing ids are absent."""
    ids = set(product_ids)
    if not ids:
        return {}
    rows = await session.execute(
        select(ProductTable.id, ProductTable.name, ProductTable.quantity).where(
            ProductTable.id.in_(ids)
        )
    )
    return {
        pid: StockLevel(product_id=pid, name=name, quantity_on_hand=qty)
        for pid, name, qty in rows.all()
    }


async def decrement(
    session: AsyncSession,
    product_id: ProductId,
    amount: int,
    product_name: str | None = None,
) -> None:
    """
    Atomic compare-and-subtract on one product.

    Raises InsufficientStock (or NotFound) so the enclosing transaction rolls
    back. product_name is used for the error when the row is gone.
    """
    if amount < 1:
        raise ValidationError(f"Cannot decrement stock by {amount}.")

    stmt = (
        update(ProductTable)
        .where(ProductTable.id == product_id, ProductTable.quantity >= amount)
        .values(quantity=ProductTable.quantity - amount)
        .execution_options(synchronize_session=False)
    )
    cursor = cast(CursorResult[Any], await session.execute(stmt))
    if cursor.rowcount == 1:
        logger.debug("Stock of product %s reduced by %s", product_id, amount)
        return

    # nothing matched: either the row is missing or the guard refused
    name = await session.scalar(
        select(ProductTable.name).where(ProductTable.id == product_id)
    )
    if name is None and product_name is None:
        raise NotFound("Product", product_id)
    logger.warning("Insufficient stock for product %s (wanted %s)", product_id, amount)
    raise InsufficientStock(name or product_name or str(product_id))


# ═══════════════════════════════════════════════════════════════════════════════
# Inventory Store
# ═══════════════════════════════════════════════════════════════════════════════

class InventoryStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_product(self, product_id: ProductId) -> Result[Product, ShopError]:
        try:
            async with self._db.session_factory() as session:
                row = await session.get(ProductTable, product_id)
                if row is None:
                    return Error(NotFound("Product", product_id))
                return Ok(_to_product(row))
        except SQLAlchemyError as e:
            logger.exception("Error fetching product %s", product_id)
            return Error(PersistenceError(f"Failed to load product: {e}"))

    async def list_products(self) -> Result[list[Product], ShopError]:
        try:
            async with self._db.session_factory() as session:
                rows = await session.scalars(select(ProductTable).order_by(ProductTable.id))
                return Ok([_to_product(r) for r in rows])
        except SQLAlchemyError as e:
            logger.exception("Error fetching products")
            return Error(PersistenceError(f"Failed to list products: {e}"))

    async def create_product(self, data: ProductData) -> Result[Product, ShopError]:
        match data.validate():
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        try:
            async with self._db.transaction() as session:
                row = ProductTable(
                    name=data.name.strip(),
                    price_cents=data.unit_price_cents,
                    quantity=data.quantity_on_hand,
                    image=data.image_ref,
                )
                session.add(row)
                await session.flush()
                product = _to_product(row)
        except SQLAlchemyError as e:
            logger.exception("Error adding product")
            return Error(PersistenceError(f"Failed to add product: {e}"))

        logger.info("Product %s created: %s", product.id, product.name)
        return Ok(product)

    async def update_product(
        self,
        product_id: ProductId,
        data: ProductData,
    ) -> Result[Product, ShopError]:
        match data.validate():
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        try:
            async with self._db.transaction() as session:
                row = await session.get(ProductTable, product_id)
                if row is None:
                    return Error(NotFound("Product", product_id))
                row.name = data.name.strip()
                row.price_cents = data.unit_price_cents
                row.quantity = data.quantity_on_hand
                if data.image_ref is not None:
                    row.image = data.image_ref
                await session.flush()
                product = _to_product(row)
        except SQLAlchemyError as e:
            logger.exception("Error updating product %s", product_id)
            return Error(PersistenceError(f"Failed to update product: {e}"))

        logger.info("Product %s updated", product_id)
        return Ok(product)

    async def delete_product(self, product_id: ProductId) -> Result[None, ShopError]:
        try:
            async with self._db.transaction() as session:
                cursor = cast(
                    CursorResult[Any],
                    await session.execute(
                        delete(ProductTable).where(ProductTable.id == product_id)
                    ),
                )
                if cursor.rowcount == 0:
                    return Error(NotFound("Product", product_id))
        except SQLAlchemyError as e:
            logger.exception("Error deleting product %s", product_id)
            return Error(PersistenceError(f"Failed to delete product: {e}"))

        logger.info("Product %s deleted", product_id)
        return Ok(None)

    async def decrement_stock(
        self,
        product_id: ProductId,
        amount: int,
    ) -> Result[None, ShopError]:
        """Standalone conditional decrement in its own transaction."""
        try:
            async with self._db.transaction() as session:
                await decrement(session, product_id, amount)
        except ShopError as e:
            return Error(e)
        except SQLAlchemyError as e:
            logger.exception("Error reducing quantity for product %s", product_id)
            return Error(PersistenceError(f"Failed to reduce stock: {e}"))
        return Ok(None)

    async def available(self, product_id: ProductId) -> Result[int, ShopError]:
        match await self.get_product(product_id):
            case Ok(product):
                return Ok(product.quantity_on_hand)
            case Error(e):
                return Error(e)


__all__ = ("InventoryStore", "find_product", "stock_levels", "decrement")
