"""
HTTP routes.

Handlers stay thin: decode → component call → ``expect`` → encode. Any
``ShopError`` is rendered by the app-level handler.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response, status

from storefront import auth
from storefront.cart import cart_total
from storefront.web._deps import (
    Carts,
    Checkout,
    CurrentAdmin,
    CurrentUser,
    Inventory,
    MaybeUser,
    Orders,
    SessionCart,
    SettingsDep,
    Users,
)
from storefront.web._errors import expect
from storefront.web.schemas import (
    CartChangeOut,
    CartOut,
    InvoiceOut,
    LoginIn,
    OrderOut,
    OrderPlacedOut,
    PaymentCreatedOut,
    ProductIn,
    ProductOut,
    QuantityIn,
    RegisterIn,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ═══════════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterIn, users: Users) -> UserOut:
    user = expect(await users.register(body.username, body.email, body.password))
    return UserOut.from_domain(user)


@router.post("/login")
async def login(
    body: LoginIn,
    request: Request,
    users: Users,
    carts: Carts,
    cart_session: SessionCart,
) -> UserOut:
    user = expect(await users.authenticate(body.email, body.password))
    items = expect(await carts.view(user.id))

    request.session[auth.IDENTITY_KEY] = auth.identity_of(user.context())
    cart_session.store(items)
    logger.info("User %s logged in, %s cart items restored", user.id, len(items))
    return UserOut.from_domain(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request) -> Response:
    request.session.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalogue
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/products")
async def list_products(inventory: Inventory) -> list[ProductOut]:
    return [ProductOut.from_domain(p) for p in expect(await inventory.list_products())]


@router.get("/products/{product_id}")
async def get_product(product_id: int, inventory: Inventory) -> ProductOut:
    return ProductOut.from_domain(expect(await inventory.get_product(product_id)))


@router.post("/admin/products", status_code=status.HTTP_201_CREATED)
async def create_product(body: ProductIn, inventory: Inventory, admin: CurrentAdmin) -> ProductOut:
    product = expect(await inventory.create_product(body.to_domain()))
    logger.info("Admin %s created product %s", admin.user_id, product.id)
    return ProductOut.from_domain(product)


@router.put("/admin/products/{product_id}")
async def update_product(
    product_id: int,
    body: ProductIn,
    inventory: Inventory,
    admin: CurrentAdmin,
) -> ProductOut:
    product = expect(await inventory.update_product(product_id, body.to_domain()))
    logger.info("Admin %s updated product %s", admin.user_id, product_id)
    return ProductOut.from_domain(product)


@router.delete("/admin/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: int, inventory: Inventory, admin: CurrentAdmin) -> Response:
    expect(await inventory.delete_product(product_id))
    logger.info("Admin %s deleted product %s", admin.user_id, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart — every successful mutation is mirrored into the session
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/cart")
async def view_cart(user: CurrentUser, carts: Carts, cart_session: SessionCart) -> CartOut:
    items = expect(await carts.view(user.user_id))
    cart_session.store(items)
    return CartOut.from_domain(items)


@router.post("/cart/add/{product_id}")
async def add_to_cart(
    product_id: int,
    user: CurrentUser,
    carts: Carts,
    cart_session: SessionCart,
    body: QuantityIn | None = None,
) -> CartChangeOut:
    quantity = body.quantity if body is not None else 1
    change = expect(await carts.add(user.user_id, product_id, quantity))
    cart_session.store(change.items)
    return CartChangeOut.from_domain(change)


@router.post("/cart/update/{product_id}")
async def update_cart(
    product_id: int,
    body: QuantityIn,
    user: CurrentUser,
    carts: Carts,
    cart_session: SessionCart,
) -> CartChangeOut:
    change = expect(await carts.update(user.user_id, product_id, body.quantity))
    cart_session.store(change.items)
    return CartChangeOut.from_domain(change)


@router.post("/cart/remove/{product_id}")
async def remove_from_cart(
    product_id: int,
    user: CurrentUser,
    carts: Carts,
    cart_session: SessionCart,
) -> CartChangeOut:
    change = expect(await carts.remove(user.user_id, product_id))
    cart_session.store(change.items)
    return CartChangeOut.from_domain(change)


@router.post("/cart/clear")
async def clear_cart(user: CurrentUser, carts: Carts, cart_session: SessionCart) -> CartOut:
    expect(await carts.clear(user.user_id))
    cart_session.store([])
    return CartOut.from_domain([])


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def checkout(
    user: MaybeUser,
    carts: Carts,
    orchestrator: Checkout,
    cart_session: SessionCart,
) -> OrderPlacedOut:
    items = expect(await carts.view(user.user_id)) if user is not None else []
    order_id = expect(await orchestrator.checkout(user, items))
    cart_session.store([])
    return OrderPlacedOut(order_id=order_id)


@router.post("/api/payments", status_code=status.HTTP_201_CREATED)
async def create_payment(
    user: CurrentUser,
    orchestrator: Checkout,
    cart_session: SessionCart,
    settings: SettingsDep,
) -> PaymentCreatedOut:
    # quoted from the session mirror; capture re-checks against the stored cart
    items = cart_session.items()
    reference = expect(await orchestrator.start_payment(user, items))
    return PaymentCreatedOut(
        reference=reference,
        amount_cents=cart_total(items),
        currency=settings.currency,
    )


@router.post("/api/payments/{reference}/capture", status_code=status.HTTP_201_CREATED)
async def capture_payment(
    reference: str,
    user: CurrentUser,
    carts: Carts,
    orchestrator: Checkout,
    cart_session: SessionCart,
) -> OrderPlacedOut:
    items = expect(await carts.view(user.user_id))
    order_id = expect(await orchestrator.pay_then_order(user, items, reference))
    cart_session.store([])
    return OrderPlacedOut(order_id=order_id, message="Payment successful and order placed!")


@router.post("/api/payments/charge", status_code=status.HTTP_201_CREATED)
async def charge_payment(
    user: CurrentUser,
    carts: Carts,
    orchestrator: Checkout,
    cart_session: SessionCart,
) -> OrderPlacedOut:
    items = expect(await carts.view(user.user_id))
    order_id = expect(await orchestrator.order_then_pay(user, items))
    cart_session.store([])
    return OrderPlacedOut(order_id=order_id, message="Payment successful and order placed!")


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/orders")
async def list_orders(user: CurrentUser, orders: Orders) -> list[OrderOut]:
    return [OrderOut.from_domain(o) for o in expect(await orders.orders_for_user(user.user_id))]


@router.get("/orders/{order_id}")
async def get_invoice(order_id: int, user: CurrentUser, orders: Orders) -> InvoiceOut:
    return InvoiceOut.from_domain(expect(await orders.invoice(order_id, user.user_id)))


__all__ = ("router",)
