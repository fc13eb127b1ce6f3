"""
Order engine — turns a cart into an order while adjusting stock.

Everything that writes runs inside ONE transaction:

    stock re-check → order header → line items → conditional decrements → clear cart
          │                                                                    │
          └──────────── any failure: rollback, nothing was written ───────────┘

Two entry points share that guarantee:

    # whole cart at once
    result = await engine.create_order_from_cart(user_id, items)

    # header first, lines appended later (payment confirmed in between)
    async with engine.open_order(user_id, total_cents) as draft:
        await draft.add_order_item(product_id, "Mug", 2, 1299)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import Cents, OrderId, ProductId, UserId
from storefront.cart import CartItem, cart_total, check_items, replace_items
from storefront.db import Database, OrderItemTable, OrderTable
from storefront.errors import (
    EmptyCart,
    InsufficientStock,
    NotFound,
    PersistenceError,
    ShopError,
    ValidationError,
)
from storefront.inventory import decrement, stock_levels
from storefront.orders._types import Invoice, Order, OrderLineItem

logger = logging.getLogger(__name__)


def _to_order(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        created_at=row.created_at,
        total_cents=row.total_cents,
        payment_reference=row.payment_reference,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction steps
# ═══════════════════════════════════════════════════════════════════════════════

async def _ensure_stock(session: AsyncSession, items: Sequence[CartItem]) -> None:
    """Cart quantities are not reservations: re-check every line before writing."""
    levels = await stock_levels(session, (i.product_id for i in items))
    for item in items:
        level = levels.get(item.product_id)
        if level is None:
            # product deleted since it went into the cart
            raise InsufficientStock(item.product_name)
        if level.quantity_on_hand < item.quantity:
            raise InsufficientStock(level.name)


async def _insert_header(
    session: AsyncSession,
    user_id: UserId,
    total_cents: Cents,
    payment_reference: str | None,
) -> OrderId:
    row = OrderTable(
        user_id=user_id,
        total_cents=total_cents,
        payment_reference=payment_reference,
    )
    session.add(row)
    await session.flush()
    return row.id


async def _insert_line(
    session: AsyncSession,
    order_id: OrderId,
    product_id: ProductId,
    product_name: str,
    quantity: int,
    unit_price_cents: Cents,
) -> OrderLineItem:
    """Insert one line item and take its units out of stock."""
    if quantity < 1:
        raise ValidationError(f"Quantity of {product_name} must be at least 1.")

    line = OrderLineItem(
        order_id=order_id,
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        line_total_cents=unit_price_cents * quantity,
    )
    session.add(
        OrderItemTable(
            order_id=line.order_id,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        )
    )
    await session.flush()
    await decrement(session, product_id, quantity, product_name)
    return line


# ═══════════════════════════════════════════════════════════════════════════════
# Incremental order
# ═══════════════════════════════════════════════════════════════════════════════

class OrderDraft:
    """
    An order whose header is written but whose transaction is still open.

    Only valid inside ``OrderEngine.open_order``. Leaving the block commits
    header, lines and stock changes together; an exception discards all of it.
    """

    def __init__(
        self,
        session: AsyncSession,
        order_id: OrderId,
        user_id: UserId,
        total_cents: Cents,
    ) -> None:
        self._session = session
        self._open = True
        self.order_id = order_id
        self.user_id = user_id
        self.total_cents = total_cents
        self.lines: list[OrderLineItem] = []

    def _check_open(self) -> None:
        if not self._open:
            raise RuntimeError(f"Order {self.order_id} is already closed")

    async def ensure_stock(self, items: Sequence[CartItem]) -> None:
        """Raise ``InsufficientStock`` now, before anything is charged."""
        self._check_open()
        await _ensure_stock(self._session, items)

    async def add_order_item(
        self,
        product_id: ProductId,
        product_name: str,
        quantity: int,
        unit_price_cents: Cents,
    ) -> OrderLineItem:
        self._check_open()
        line = await _insert_line(
            self._session,
            self.order_id,
            product_id,
            product_name,
            quantity,
            unit_price_cents,
        )
        self.lines.append(line)
        return line

    async def clear_cart(self) -> None:
        self._check_open()
        await replace_items(self._session, self.user_id, [])

    def _validate(self) -> None:
        if not self.lines:
            raise EmptyCart()
        lines_total = sum(line.line_total_cents for line in self.lines)
        if lines_total != self.total_cents:
            raise ValidationError(
                f"Order total {self.total_cents} does not match its items ({lines_total})."
            )


# ═══════════════════════════════════════════════════════════════════════════════
# Order Engine
# ═══════════════════════════════════════════════════════════════════════════════

class OrderEngine:
    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_order_from_cart(
        self,
        user_id: UserId,
        cart_items: Sequence[CartItem],
        *,
        payment_reference: str | None = None,
    ) -> Result[OrderId, ShopError]:
        """
        Create order + line items, decrement stock, clear the cart. Atomically.

        Totals use the cart's snapshot prices, i.e. what the customer saw.
        """
        if not cart_items:
            return Error(EmptyCart())
        if (problem := check_items(cart_items)) is not None:
            return Error(problem)

        total = cart_total(cart_items)
        logger.info(
            "Creating order for user %s: %s items, total %s",
            user_id,
            len(cart_items),
            total,
        )

        try:
            async with self._db.transaction() as session:
                await _ensure_stock(session, cart_items)
                order_id = await _insert_header(session, user_id, total, payment_reference)
                for item in cart_items:
                    await _insert_line(
                        session,
                        order_id,
                        item.product_id,
                        item.product_name,
                        item.quantity,
                        item.unit_price_cents,
                    )
                await replace_items(session, user_id, [])
        except ShopError as e:
            logger.warning("Order for user %s rejected: %s", user_id, e)
            return Error(e)
        except SQLAlchemyError as e:
            logger.exception("Error creating order for user %s", user_id)
            return Error(PersistenceError(f"Order was not placed, nothing was saved: {e}"))

        logger.info("Order %s created for user %s", order_id, user_id)
        return Ok(order_id)

    @asynccontextmanager
    async def open_order(
        self,
        user_id: UserId,
        total_cents: Cents,
        *,
        payment_reference: str | None = None,
    ) -> AsyncIterator[OrderDraft]:
        """
        Header now, items later — still one transaction.

        Raises instead of returning Result: the caller's own code runs inside
        the block, and raising is what rolls it back.
        """
        if total_cents < 0:
            raise ValidationError("Order total must be >= 0.")

        async with self._db.transaction() as session:
            order_id = await _insert_header(session, user_id, total_cents, payment_reference)
            logger.info("Order %s opened for user %s (total %s)", order_id, user_id, total_cents)
            draft = OrderDraft(session, order_id, user_id, total_cents)
            try:
                yield draft
            finally:
                draft._open = False
            draft._validate()

        logger.info("Order %s committed with %s items", order_id, len(draft.lines))

    # ═══════════════════════════════════════════════════════════════════════════
    # Read side
    # ═══════════════════════════════════════════════════════════════════════════

    async def orders_for_user(self, user_id: UserId) -> Result[list[Order], ShopError]:
        try:
            async with self._db.session_factory() as session:
                rows = await session.scalars(
                    select(OrderTable)
                    .where(OrderTable.user_id == user_id)
                    .order_by(OrderTable.created_at.desc(), OrderTable.id.desc())
                )
                return Ok([_to_order(r) for r in rows])
        except SQLAlchemyError as e:
            logger.exception("Error fetching orders of user %s", user_id)
            return Error(PersistenceError(f"Unable to load your order history: {e}"))

    async def invoice(
        self,
        order_id: OrderId,
        user_id: UserId,
    ) -> Result[Invoice, ShopError]:
        """Header + lines, only if the order belongs to ``user_id``."""
        try:
            async with self._db.session_factory() as session:
                header = await session.scalar(
                    select(OrderTable).where(
                        OrderTable.id == order_id,
                        OrderTable.user_id == user_id,
                    )
                )
                if header is None:
                    return Error(NotFound("Order", order_id))

                lines = await session.scalars(
                    select(OrderItemTable)
                    .where(OrderItemTable.order_id == order_id)
                    .order_by(OrderItemTable.id)
                )
                return Ok(
                    Invoice(
                        order=_to_order(header),
                        items=tuple(
                            OrderLineItem(
                                order_id=r.order_id,
                                product_id=r.product_id,
                                product_name=r.product_name,
                                quantity=r.quantity,
                                unit_price_cents=r.price_cents,
                                line_total_cents=r.line_total_cents,
                            )
                            for r in lines
                        ),
                    )
                )
        except SQLAlchemyError as e:
            logger.exception("Error fetching order %s", order_id)
            return Error(PersistenceError(f"Unable to load invoice: {e}"))

    async def find_by_payment_reference(
        self,
        reference: str,
    ) -> Result[Order | None, ShopError]:
        """The order a payment already fulfilled, with its owner, if any."""
        try:
            async with self._db.session_factory() as session:
                row = await session.scalar(
                    select(OrderTable).where(OrderTable.payment_reference == reference)
                )
                return Ok(_to_order(row) if row is not None else None)
        except SQLAlchemyError as e:
            return Error(PersistenceError(f"Failed to look up payment {reference}: {e}"))


__all__ = ("OrderEngine", "OrderDraft")
