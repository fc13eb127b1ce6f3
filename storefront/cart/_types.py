"""
Cart types.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

from storefront._types import ProductId, Cents


@dataclass(frozen=True, slots=True)
class CartItem:
    """
    One line of a cart.

    Note: name / price / image are snapshots taken when the item was added.
    Editing the product later does not reprice the cart.
    """

    product_id: ProductId
    product_name: str
    unit_price_cents: Cents
    quantity: int
    image_ref: str | None = None

    @property
    def line_total_cents(self) -> Cents:
        return self.unit_price_cents * self.quantity

    def with_quantity(self, quantity: int) -> CartItem:
        return replace(self, quantity=quantity)


class CartOutcome(Enum):
    """What happened to a requested quantity."""

    APPLIED = "applied"  # fully applied
    CAPPED = "capped"  # partially applied, clamped to stock
    DENIED = "denied"  # already at the cap, nothing changed
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class CartChange:
    outcome: CartOutcome
    product_id: ProductId
    requested: int
    effective_quantity: int
    items: tuple[CartItem, ...]
    message: str


def cart_total(items: Iterable[CartItem]) -> Cents:
    return sum(item.line_total_cents for item in items)


__all__ = ("CartItem", "CartOutcome", "CartChange", "cart_total")
