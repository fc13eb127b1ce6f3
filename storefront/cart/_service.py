"""
Cart service — add / update / remove / clear with stock capping.

Every mutation is read-modify-write inside one transaction and the full cart
is persisted before the call returns.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import ProductId, UserId
from storefront.cart._store import load_items, replace_items
from storefront.cart._types import CartChange, CartItem, CartOutcome
from storefront.db import Database
from storefront.errors import NotFound, PersistenceError, ShopError
from storefront.inventory import find_product

logger = logging.getLogger(__name__)

type _Mutation = Callable[[AsyncSession, list[CartItem]], Awaitable[CartChange]]


def _index_of(items: list[CartItem], product_id: ProductId) -> int | None:
    for i, item in enumerate(items):
        if item.product_id == product_id:
            return i
    return None


class CartService:
    def __init__(self, database: Database) -> None:
        self._db = database

    async def _mutate(self, user_id: UserId, mutation: _Mutation) -> Result[CartChange, ShopError]:
        try:
            async with self._db.transaction() as session:
                items = await load_items(session, user_id)
                change = await mutation(session, items)
                await replace_items(session, user_id, change.items)
        except ShopError as e:
            return Error(e)
        except SQLAlchemyError as e:
            logger.exception("Error saving cart of user %s", user_id)
            return Error(PersistenceError(f"Error saving cart. Please try again. ({e})"))

        logger.info(
            "Cart of user %s: product %s %s (requested %s, now %s)",
            user_id,
            change.product_id,
            change.outcome.value,
            change.requested,
            change.effective_quantity,
        )
        return Ok(change)

    # ═══════════════════════════════════════════════════════════════════════════
    # Queries
    # ═══════════════════════════════════════════════════════════════════════════

    async def view(self, user_id: UserId) -> Result[list[CartItem], ShopError]:
        try:
            async with self._db.session_factory() as session:
                return Ok(await load_items(session, user_id))
        except SQLAlchemyError as e:
            logger.exception("Error loading cart of user %s", user_id)
            return Error(PersistenceError(f"Error loading your cart. ({e})"))

    # ═══════════════════════════════════════════════════════════════════════════
    # Mutations
    # ═══════════════════════════════════════════════════════════════════════════

    async def add(
        self,
        user_id: UserId,
        product_id: ProductId,
        quantity: int = 1,
    ) -> Result[CartChange, ShopError]:
        """
        Add ``quantity`` units, never exceeding what is on hand.

        Total in cart is capped at quantity_on_hand: APPLIED when everything
        fits, CAPPED when only part fits, DENIED when the cart already holds
        the maximum.
        """
        to_add = max(quantity, 1)

        async def mutation(session: AsyncSession, items: list[CartItem]) -> CartChange:
            product = await find_product(session, product_id)
            if product is None:
                raise NotFound("Product", product_id)

            stock = product.quantity_on_hand
            idx = _index_of(items, product_id)
            current = items[idx].quantity if idx is not None else 0
            wanted = current + to_add

            if wanted <= stock:
                outcome, effective = CartOutcome.APPLIED, wanted
                message = f"{product.name} added to cart."
            elif stock - current > 0:
                outcome, effective = CartOutcome.CAPPED, stock
                message = (
                    f"Only {stock} unit(s) of {product.name} available. "
                    "Your cart has been updated to the maximum allowed."
                )
            else:
                outcome, effective = CartOutcome.DENIED, current
                message = (
                    "You already have the maximum available quantity of "
                    f"{product.name} in your cart."
                )

            if outcome is not CartOutcome.DENIED:
                if idx is not None:
                    items[idx] = items[idx].with_quantity(effective)
                else:
                    items.append(
                        CartItem(
                            product_id=product.id,
                            product_name=product.name,
                            unit_price_cents=product.unit_price_cents,
                            quantity=effective,
                            image_ref=product.image_ref,
                        )
                    )

            return CartChange(
                outcome=outcome,
                product_id=product_id,
                requested=to_add,
                effective_quantity=effective,
                items=tuple(items),
                message=message,
            )

        return await self._mutate(user_id, mutation)

    async def update(
        self,
        user_id: UserId,
        product_id: ProductId,
        quantity: int,
    ) -> Result[CartChange, ShopError]:
        """Set the quantity of a line; zero or less removes it."""

        async def mutation(session: AsyncSession, items: list[CartItem]) -> CartChange:
            idx = _index_of(items, product_id)
            if idx is None:
                raise NotFound("CartItem", product_id)

            if quantity <= 0:
                del items[idx]
                return CartChange(
                    outcome=CartOutcome.REMOVED,
                    product_id=product_id,
                    requested=quantity,
                    effective_quantity=0,
                    items=tuple(items),
                    message="Item removed from cart.",
                )

            product = await find_product(session, product_id)
            if product is None:
                raise NotFound("Product", product_id)

            stock = product.quantity_on_hand
            if quantity <= stock:
                items[idx] = items[idx].with_quantity(quantity)
                outcome, effective = CartOutcome.APPLIED, quantity
                message = "Cart updated successfully."
            else:
                outcome, effective = CartOutcome.CAPPED, stock
                message = (
                    f"Only {stock} unit(s) of {product.name} available. "
                    "Quantity has been adjusted."
                )
                if stock > 0:
                    items[idx] = items[idx].with_quantity(stock)
                else:
                    del items[idx]

            return CartChange(
                outcome=outcome,
                product_id=product_id,
                requested=quantity,
                effective_quantity=effective,
                items=tuple(items),
                message=message,
            )

        return await self._mutate(user_id, mutation)

    async def remove(
        self,
        user_id: UserId,
        product_id: ProductId,
    ) -> Result[CartChange, ShopError]:
        async def mutation(_session: AsyncSession, items: list[CartItem]) -> CartChange:
            idx = _index_of(items, product_id)
            if idx is None:
                raise NotFound("CartItem", product_id)
            del items[idx]
            return CartChange(
                outcome=CartOutcome.REMOVED,
                product_id=product_id,
                requested=0,
                effective_quantity=0,
                items=tuple(items),
                message="Item removed from cart.",
            )

        return await self._mutate(user_id, mutation)

    async def clear(self, user_id: UserId) -> Result[None, ShopError]:
        try:
            async with self._db.transaction() as session:
                await replace_items(session, user_id, [])
        except SQLAlchemyError as e:
            logger.exception("Error clearing cart of user %s", user_id)
            return Error(PersistenceError(f"Error clearing cart. Please try again. ({e})"))

        logger.info("Cart of user %s cleared", user_id)
        return Ok(None)


__all__ = ("CartService",)
