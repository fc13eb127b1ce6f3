"""
Cart store — the persisted cart of each user.

``save`` is a full replace: callers always pass the complete desired cart.
Delete + insert run in one transaction, so two racing saves can never leave a
mix of both carts behind.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import UserId
from storefront.cart._types import CartItem
from storefront.db import CartItemTable, Database
from storefront.errors import PersistenceError, ShopError, ValidationError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Session-level primitives
# ═══════════════════════════════════════════════════════════════════════════════

async def load_items(session: AsyncSession, user_id: UserId) -> list[CartItem]:
    rows = await session.scalars(
        select(CartItemTable)
        .where(CartItemTable.user_id == user_id)
        .order_by(CartItemTable.id)
    )
    return [
        CartItem(
            product_id=r.product_id,
            product_name=r.product_name,
            unit_price_cents=r.price_cents,
            quantity=r.quantity,
            image_ref=r.image,
        )
        for r in rows
    ]


def check_items(items: Sequence[CartItem]) -> ShopError | None:
    seen: set[int] = set()
    for item in items:
        if item.quantity < 1:
            return ValidationError(
                f"Quantity of {item.product_name} must be at least 1."
            )
        if item.product_id in seen:
            return ValidationError(f"Product {item.product_id} appears twice in the cart.")
        seen.add(item.product_id)
    return None


async def replace_items(
    session: AsyncSession,
    user_id: UserId,
    items: Sequence[CartItem],
) -> None:
    """Delete every row of the user, insert ``items`` in order."""
    if (problem := check_items(items)) is not None:
        raise problem

    await session.execute(delete(CartItemTable).where(CartItemTable.user_id == user_id))
    session.add_all(
        CartItemTable(
            user_id=user_id,
            product_id=item.product_id,
            product_name=item.product_name,
            price_cents=item.unit_price_cents,
            quantity=item.quantity,
            image=item.image_ref,
        )
        for item in items
    )
    await session.flush()


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Store
# ═══════════════════════════════════════════════════════════════════════════════

class CartStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    async def load(self, user_id: UserId) -> Result[list[CartItem], ShopError]:
        try:
            async with self._db.session_factory() as session:
                return Ok(await load_items(session, user_id))
        except SQLAlchemyError as e:
            logger.exception("Error loading cart of user %s", user_id)
            return Error(PersistenceError(f"Failed to load cart: {e}"))

    async def save(
        self,
        user_id: UserId,
        items: Sequence[CartItem],
    ) -> Result[None, ShopError]:
        try:
            async with self._db.transaction() as session:
                await replace_items(session, user_id, items)
        except ShopError as e:
            return Error(e)
        except SQLAlchemyError as e:
            logger.exception("Error saving cart of user %s", user_id)
            return Error(PersistenceError(f"Failed to save cart: {e}"))

        logger.debug("Cart of user %s saved (%s items)", user_id, len(items))
        return Ok(None)

    async def clear(self, user_id: UserId) -> Result[None, ShopError]:
        return await self.save(user_id, [])


__all__ = ("CartStore", "load_items", "replace_items", "check_items")
