"""
Checkout Orchestrator — validate, hand off to the Order Engine, talk to the
payment gateway.

Three ways to check out:

    checkout(ctx, items)                  no payment step
    pay_then_order(ctx, items, reference) gateway already holds the payment
    order_then_pay(ctx, items)            order header first, charge, then lines

``start_payment(ctx, items)`` opens the gateway-side payment that
``pay_then_order`` later captures.

Only the Order Engine clears the cart, inside its own transaction. A failed
checkout therefore leaves the cart exactly as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError

from kungfu import Result, Ok, Error, LazyCoroResult
from combinators import lift as L

from storefront._types import Cents, OrderId
from storefront.auth import AuthContext
from storefront.cart import CartItem, cart_total, check_items
from storefront.checkout import _saga as S
from storefront.checkout._gateway import PaymentConfirmation, PaymentGateway
from storefront.errors import (
    EmptyCart,
    PaymentDeclined,
    PersistenceError,
    ShopError,
    Unauthorized,
    ValidationError,
)
from storefront.orders import OrderEngine

logger = logging.getLogger(__name__)


def _precheck(cart_items: Sequence[CartItem]) -> ShopError | None:
    if not cart_items:
        return EmptyCart()
    return check_items(cart_items)


class CheckoutOrchestrator:
    def __init__(
        self,
        orders: OrderEngine,
        gateway: PaymentGateway,
        *,
        currency: str = "SGD",
    ) -> None:
        self._orders = orders
        self._gateway = gateway
        self._currency = currency

    # ═══════════════════════════════════════════════════════════════════════════
    # Plain checkout
    # ═══════════════════════════════════════════════════════════════════════════

    async def checkout(
        self,
        ctx: AuthContext | None,
        cart_items: Sequence[CartItem],
    ) -> Result[OrderId, ShopError]:
        if ctx is None:
            return Error(Unauthorized())
        if (problem := _precheck(cart_items)) is not None:
            return Error(problem)
        return await self._orders.create_order_from_cart(ctx.user_id, cart_items)

    # ═══════════════════════════════════════════════════════════════════════════
    # (a) Pay, then order
    # ═══════════════════════════════════════════════════════════════════════════

    async def start_payment(
        self,
        ctx: AuthContext | None,
        cart_items: Sequence[CartItem],
    ) -> Result[str, ShopError]:
        """Open a gateway payment for the cart total; the reference goes to the client."""
        if ctx is None:
            return Error(Unauthorized())
        if (problem := _precheck(cart_items)) is not None:
            return Error(problem)

        total = cart_total(cart_items)
        created = await L.catching_async(
            lambda: self._gateway.create_payment(total, self._currency),
            on_error=lambda e: PaymentDeclined(
                f"user:{ctx.user_id}", f"Payment could not be created: {e}"
            ),
        )
        match created:
            case Ok(reference):
                logger.info("Payment %s opened for user %s (total %s)", reference, ctx.user_id, total)
        return created

    async def pay_then_order(
        self,
        ctx: AuthContext | None,
        cart_items: Sequence[CartItem],
        reference: str,
    ) -> Result[OrderId, ShopError]:
        """
        Capture ``reference``, then create the order.

        Runs as two compensating steps: if the order cannot be created after
        the capture went through, the capture is refunded. A reference that
        already produced an order for this user returns that order and
        charges nothing; one that paid for somebody else's order is rejected.
        """
        if ctx is None:
            return Error(Unauthorized())

        match await self._fulfilled_by(ctx, reference):
            case Error(e):
                return Error(e)
            case Ok(order_id) if order_id is not None:
                logger.info("Payment %s already fulfilled by order %s", reference, order_id)
                return Ok(order_id)

        if (problem := _precheck(cart_items)) is not None:
            return Error(problem)

        total = cart_total(cart_items)
        capture: S.Step[PaymentConfirmation, ShopError] = S.Step(
            action=LazyCoroResult(lambda: self._capture(reference)),
            compensate=self._refund_unless_fulfilled,
        )
        saga = capture.then(
            lambda confirmation: S.Step(
                action=LazyCoroResult(
                    lambda: self._place_paid_order(ctx, cart_items, confirmation, total)
                ),
            )
        )

        match await S.run(saga):
            case Ok(order_id):
                logger.info("Payment %s fulfilled by order %s", reference, order_id)
                return Ok(order_id)
            case Error(failure):
                if not failure.rollback_complete:
                    logger.error("Refund of payment %s failed, needs manual attention", reference)
                return Error(failure.error)

    async def _fulfilled_by(
        self,
        ctx: AuthContext,
        reference: str,
    ) -> Result[OrderId | None, ShopError]:
        match await self._orders.find_by_payment_reference(reference):
            case Ok(None):
                return Ok(None)
            case Ok(order) if order.user_id == ctx.user_id:
                return Ok(order.id)
            case Ok(order):
                logger.warning(
                    "User %s presented payment %s of order %s",
                    ctx.user_id,
                    reference,
                    order.id,
                )
                return Error(ValidationError(f"Payment {reference} already paid for another order."))
            case Error(e):
                return Error(e)

    async def _capture(self, reference: str) -> Result[PaymentConfirmation, ShopError]:
        captured = await L.catching_async(
            lambda: self._gateway.capture(reference),
            on_error=lambda e: PaymentDeclined(reference, f"Payment capture failed: {e}"),
        )
        match captured:
            case Ok(confirmation) if confirmation.confirmed:
                return Ok(confirmation)
            case Ok(_):
                return Error(PaymentDeclined(reference))
            case Error(e):
                return Error(e)

    async def _place_paid_order(
        self,
        ctx: AuthContext,
        cart_items: Sequence[CartItem],
        confirmation: PaymentConfirmation,
        total: Cents,
    ) -> Result[OrderId, ShopError]:
        if confirmation.amount_cents != total:
            return Error(
                ValidationError(
                    f"Paid amount {confirmation.amount_cents} does not match "
                    f"cart total {total}."
                )
            )

        created = await self._orders.create_order_from_cart(
            ctx.user_id,
            cart_items,
            payment_reference=confirmation.reference,
        )
        match created:
            case Ok(_):
                return created
            case Error(_):
                # a concurrent callback for the same payment may have committed
                # first, leaving this one short of stock or of the unique reference
                match await self._fulfilled_by(ctx, confirmation.reference):
                    case Ok(order_id) if order_id is not None:
                        return Ok(order_id)
                return created

    async def _refund_unless_fulfilled(self, confirmation: PaymentConfirmation) -> None:
        """Refund a captured payment, unless a committed order already holds it."""
        match await self._orders.find_by_payment_reference(confirmation.reference):
            case Ok(None):
                await self._gateway.refund(confirmation.reference)
                logger.warning("Payment %s refunded, no order was placed", confirmation.reference)
            case Ok(order):
                logger.warning(
                    "Payment %s kept, it pays for order %s",
                    confirmation.reference,
                    order.id,
                )
            case Error(e):
                raise e

    # ═══════════════════════════════════════════════════════════════════════════
    # (b) Order, then pay
    # ═══════════════════════════════════════════════════════════════════════════

    async def order_then_pay(
        self,
        ctx: AuthContext | None,
        cart_items: Sequence[CartItem],
    ) -> Result[OrderId, ShopError]:
        """
        Open the order, check stock, charge, append the lines once the charge
        is confirmed.

        Note: header, lines and stock changes share one transaction, so a
        declined charge leaves no order behind. A charge that went through
        before the transaction failed is refunded.
        """
        if ctx is None:
            return Error(Unauthorized())
        if (problem := _precheck(cart_items)) is not None:
            return Error(problem)

        total = cart_total(cart_items)
        confirmation: PaymentConfirmation | None = None

        try:
            async with self._orders.open_order(ctx.user_id, total) as draft:
                await draft.ensure_stock(cart_items)

                charged = await L.catching_async(
                    lambda: self._gateway.charge(total, self._currency, f"user:{ctx.user_id}"),
                    on_error=lambda e: PaymentDeclined(
                        f"order:{draft.order_id}", f"Payment failed: {e}"
                    ),
                )
                match charged:
                    case Ok(c) if c.confirmed:
                        confirmation = c
                        paid_with = c.reference
                    case Ok(c):
                        raise PaymentDeclined(c.reference)
                    case Error(e):
                        raise e

                for item in cart_items:
                    await draft.add_order_item(
                        item.product_id,
                        item.product_name,
                        item.quantity,
                        item.unit_price_cents,
                    )
                await draft.clear_cart()
                order_id = draft.order_id
        except ShopError as e:
            await self._refund_after_rollback(confirmation, e)
            return Error(e)
        except SQLAlchemyError as e:
            logger.exception("Order for user %s failed after opening", ctx.user_id)
            await self._refund_after_rollback(confirmation, e)
            return Error(PersistenceError(f"Order was not placed, nothing was saved: {e}"))

        logger.info("Order %s paid with %s", order_id, paid_with)
        return Ok(order_id)

    async def _refund_after_rollback(
        self,
        confirmation: PaymentConfirmation | None,
        cause: Exception,
    ) -> None:
        if confirmation is None:
            return
        logger.warning("Refunding %s, order rolled back: %s", confirmation.reference, cause)
        try:
            await self._gateway.refund(confirmation.reference)
        except Exception:
            logger.exception("Refund of payment %s failed", confirmation.reference)


__all__ = ("CheckoutOrchestrator",)
