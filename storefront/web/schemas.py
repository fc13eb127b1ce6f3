"""
Request / response models.

Requests turn into domain values with ``to_domain()``; responses are built
from domain values with ``from_domain(...)``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from storefront.auth import User
from storefront.cart import CartChange, CartItem, cart_total
from storefront.inventory import Product, ProductData
from storefront.orders import Invoice, Order


# ═══════════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════════

class RegisterIn(BaseModel):
    username: str
    email: str
    password: str


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    role: str

    @classmethod
    def from_domain(cls, dom: User) -> UserOut:
        return cls(id=dom.id, username=dom.username, email=dom.email, role=dom.role.value)


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════

class ProductIn(BaseModel):
    name: str
    unit_price_cents: int
    quantity_on_hand: int = 0
    image_ref: str | None = None

    def to_domain(self) -> ProductData:
        return ProductData(
            name=self.name,
            unit_price_cents=self.unit_price_cents,
            quantity_on_hand=self.quantity_on_hand,
            image_ref=self.image_ref,
        )


class ProductOut(BaseModel):
    id: int
    name: str
    unit_price_cents: int
    quantity_on_hand: int
    image_ref: str | None
    in_stock: bool

    @classmethod
    def from_domain(cls, dom: Product) -> ProductOut:
        return cls(
            id=dom.id,
            name=dom.name,
            unit_price_cents=dom.unit_price_cents,
            quantity_on_hand=dom.quantity_on_hand,
            image_ref=dom.image_ref,
            in_stock=dom.in_stock,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

class QuantityIn(BaseModel):
    quantity: int = 1


class CartItemOut(BaseModel):
    product_id: int
    product_name: str
    unit_price_cents: int
    quantity: int
    line_total_cents: int
    image_ref: str | None

    @classmethod
    def from_domain(cls, dom: CartItem) -> CartItemOut:
        return cls(
            product_id=dom.product_id,
            product_name=dom.product_name,
            unit_price_cents=dom.unit_price_cents,
            quantity=dom.quantity,
            line_total_cents=dom.line_total_cents,
            image_ref=dom.image_ref,
        )


class CartOut(BaseModel):
    items: list[CartItemOut]
    total_cents: int

    @classmethod
    def from_domain(cls, dom: tuple[CartItem, ...] | list[CartItem]) -> CartOut:
        return cls(
            items=[CartItemOut.from_domain(i) for i in dom],
            total_cents=cart_total(dom),
        )


class CartChangeOut(BaseModel):
    outcome: str
    product_id: int
    requested: int
    effective_quantity: int
    message: str
    cart: CartOut

    @classmethod
    def from_domain(cls, dom: CartChange) -> CartChangeOut:
        return cls(
            outcome=dom.outcome.value,
            product_id=dom.product_id,
            requested=dom.requested,
            effective_quantity=dom.effective_quantity,
            message=dom.message,
            cart=CartOut.from_domain(dom.items),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class PaymentCreatedOut(BaseModel):
    reference: str
    amount_cents: int
    currency: str


class OrderPlacedOut(BaseModel):
    order_id: int
    message: str = "Order placed successfully!"


class OrderOut(BaseModel):
    id: int
    created_at: datetime
    total_cents: int
    payment_reference: str | None

    @classmethod
    def from_domain(cls, dom: Order) -> OrderOut:
        return cls(
            id=dom.id,
            created_at=dom.created_at,
            total_cents=dom.total_cents,
            payment_reference=dom.payment_reference,
        )


class OrderLineOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


class InvoiceOut(BaseModel):
    order: OrderOut
    items: list[OrderLineOut] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, dom: Invoice) -> InvoiceOut:
        return cls(
            order=OrderOut.from_domain(dom.order),
            items=[
                OrderLineOut(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.line_total_cents,
                )
                for line in dom.items
            ],
        )


class ErrorOut(BaseModel):
    error: str
    message: str


__all__ = (
    "RegisterIn",
    "LoginIn",
    "UserOut",
    "ProductIn",
    "ProductOut",
    "QuantityIn",
    "CartItemOut",
    "CartOut",
    "CartChangeOut",
    "PaymentCreatedOut",
    "OrderPlacedOut",
    "OrderOut",
    "OrderLineOut",
    "InvoiceOut",
    "ErrorOut",
)
