import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from storefront.auth import AuthContext
from storefront.cart import CartItem, CartService, CartStore
from storefront.db import Database, OrderItemTable, OrderTable
from storefront.errors import EmptyCart, InsufficientStock, NotFound, PersistenceError, ValidationError
from storefront.inventory import InventoryStore
from storefront.orders import OrderEngine
from storefront.orders import _engine

from tests._helpers import ok, err, is_ok


async def _fill_cart(carts: CartService, user: AuthContext, *lines: tuple[int, int]) -> list[CartItem]:
    for product_id, quantity in lines:
        ok(await carts.add(user.user_id, product_id, quantity))
    return ok(await carts.view(user.user_id))


# ═══════════════════════════════════════════════════════════════════════════════
# create_order_from_cart
# ═══════════════════════════════════════════════════════════════════════════════

async def test_order_decrements_stock_and_clears_cart(
    orders: OrderEngine,
    carts: CartService,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    product = await make_product("Mug", price=10, quantity=5)
    items = await _fill_cart(carts, alice, (product.id, 3))

    order_id = ok(await orders.create_order_from_cart(alice.user_id, items))

    invoice = ok(await orders.invoice(order_id, alice.user_id))
    assert invoice.order.total_cents == 30
    assert [(i.product_name, i.quantity, i.unit_price_cents, i.line_total_cents) for i in invoice.items] == [
        ("Mug", 3, 10, 30)
    ]
    assert ok(await inventory.available(product.id)) == 2
    assert ok(await carts.view(alice.user_id)) == []


async def test_insufficient_stock_changes_nothing(
    orders: OrderEngine,
    cart_store: CartStore,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    product = await make_product("Plate", price=4, quantity=3)
    # cart quantities are not reservations, so the cart may ask for more than exists
    items = [CartItem(product.id, "Plate", 4, 5)]
    ok(await cart_store.save(alice.user_id, items))

    e = err(await orders.create_order_from_cart(alice.user_id, items))

    assert isinstance(e, InsufficientStock)
    assert e.product_name == "Plate"
    assert ok(await inventory.available(product.id)) == 3
    assert ok(await orders.orders_for_user(alice.user_id)) == []
    assert ok(await cart_store.load(alice.user_id)) == items


async def test_multi_line_order_is_all_or_nothing(
    orders: OrderEngine,
    cart_store: CartStore,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    plenty = await make_product("Spoon", price=100, quantity=10)
    scarce = await make_product("Teapot", price=900, quantity=1)
    items = [
        CartItem(plenty.id, "Spoon", 100, 4),
        CartItem(scarce.id, "Teapot", 900, 2),
    ]
    ok(await cart_store.save(alice.user_id, items))

    e = err(await orders.create_order_from_cart(alice.user_id, items))

    assert isinstance(e, InsufficientStock)
    assert e.product_name == "Teapot"
    assert ok(await inventory.available(plenty.id)) == 10
    assert ok(await inventory.available(scarce.id)) == 1
    assert ok(await orders.orders_for_user(alice.user_id)) == []
    assert ok(await cart_store.load(alice.user_id)) == items


async def _row_counts(database: Database) -> tuple[int, int]:
    async with database.session_factory() as session:
        orders = await session.scalar(select(func.count()).select_from(OrderTable))
        lines = await session.scalar(select(func.count()).select_from(OrderItemTable))
    return orders, lines


async def test_failure_after_writes_rolls_back_everything(
    orders: OrderEngine,
    cart_store: CartStore,
    inventory: InventoryStore,
    database: Database,
    alice: AuthContext,
    make_product,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    first = await make_product("Spoon", price=100, quantity=10)
    second = await make_product("Fork", price=200, quantity=10)
    items = [
        CartItem(first.id, "Spoon", 100, 2),
        CartItem(second.id, "Fork", 200, 3),
    ]
    ok(await cart_store.save(alice.user_id, items))

    real_decrement = _engine.decrement
    calls = 0

    async def decrement_then_fail(session, product_id, quantity, product_name):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))
        await real_decrement(session, product_id, quantity, product_name)

    monkeypatch.setattr(_engine, "decrement", decrement_then_fail)

    e = err(await orders.create_order_from_cart(alice.user_id, items))

    # header, first line and first decrement were written before the failure
    assert calls == 2
    assert isinstance(e, PersistenceError)
    assert await _row_counts(database) == (0, 0)
    assert ok(await inventory.available(first.id)) == 10
    assert ok(await inventory.available(second.id)) == 10
    assert ok(await cart_store.load(alice.user_id)) == items


async def test_payment_reference_is_unique(
    orders: OrderEngine,
    carts: CartService,
    inventory: InventoryStore,
    database: Database,
    alice: AuthContext,
    bob: AuthContext,
    make_product,
) -> None:
    product = await make_product(price=100, quantity=10)
    first = ok(await orders.create_order_from_cart(
        alice.user_id, await _fill_cart(carts, alice, (product.id, 1)), payment_reference="PAY-D"
    ))
    bob_items = await _fill_cart(carts, bob, (product.id, 2))

    e = err(await orders.create_order_from_cart(bob.user_id, bob_items, payment_reference="PAY-D"))

    assert isinstance(e, PersistenceError)
    assert await _row_counts(database) == (1, 1)
    assert ok(await inventory.available(product.id)) == 9
    assert ok(await carts.view(bob.user_id)) == bob_items
    assert ok(await orders.find_by_payment_reference("PAY-D")).id == first


async def test_deleted_product_reported_by_snapshot_name(
    orders: OrderEngine,
    carts: CartService,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    product = await make_product("Vase", quantity=3)
    items = await _fill_cart(carts, alice, (product.id, 1))
    ok(await inventory.delete_product(product.id))

    e = err(await orders.create_order_from_cart(alice.user_id, items))

    assert isinstance(e, InsufficientStock)
    assert e.product_name == "Vase"
    assert ok(await carts.view(alice.user_id)) == items


async def test_empty_cart_rejected(orders: OrderEngine, alice: AuthContext) -> None:
    assert isinstance(err(await orders.create_order_from_cart(alice.user_id, [])), EmptyCart)


async def test_invalid_lines_rejected(orders: OrderEngine, alice: AuthContext) -> None:
    e = err(await orders.create_order_from_cart(alice.user_id, [CartItem(1, "Mug", 100, 0)]))
    assert isinstance(e, ValidationError)


async def test_total_uses_snapshot_prices(
    orders: OrderEngine,
    carts: CartService,
    alice: AuthContext,
    make_product,
) -> None:
    a = await make_product("A", price=250, quantity=5)
    b = await make_product("B", price=1999, quantity=5)
    items = await _fill_cart(carts, alice, (a.id, 2), (b.id, 1))

    order_id = ok(await orders.create_order_from_cart(alice.user_id, items))

    invoice = ok(await orders.invoice(order_id, alice.user_id))
    assert invoice.order.total_cents == 2 * 250 + 1999
    assert sum(i.line_total_cents for i in invoice.items) == invoice.order.total_cents


# ═══════════════════════════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════════════════════════

async def test_two_checkouts_race_for_last_unit(
    orders: OrderEngine,
    carts: CartService,
    inventory: InventoryStore,
    alice: AuthContext,
    bob: AuthContext,
    make_product,
) -> None:
    product = await make_product("Last one", quantity=1)
    alice_items = await _fill_cart(carts, alice, (product.id, 1))
    bob_items = await _fill_cart(carts, bob, (product.id, 1))

    results = await asyncio.gather(
        orders.create_order_from_cart(alice.user_id, alice_items),
        orders.create_order_from_cart(bob.user_id, bob_items),
    )

    assert sum(is_ok(r) for r in results) == 1
    [loser] = [r for r in results if not is_ok(r)]
    assert isinstance(err(loser), InsufficientStock)
    assert ok(await inventory.available(product.id)) == 0


async def test_over_requesting_checkouts(
    orders: OrderEngine,
    carts: CartService,
    inventory: InventoryStore,
    make_user,
    make_product,
) -> None:
    product = await make_product(quantity=3)
    buyers = [await make_user() for _ in range(6)]
    carts_of = [await _fill_cart(carts, buyer, (product.id, 1)) for buyer in buyers]

    results = await asyncio.gather(
        *(orders.create_order_from_cart(b.user_id, items) for b, items in zip(buyers, carts_of))
    )

    assert sum(is_ok(r) for r in results) == 3
    assert all(isinstance(err(r), InsufficientStock) for r in results if not is_ok(r))
    assert ok(await inventory.available(product.id)) == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Incremental orders
# ═══════════════════════════════════════════════════════════════════════════════

async def test_open_order_commits_header_and_lines(
    orders: OrderEngine,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    product = await make_product("Mug", price=500, quantity=4)

    async with orders.open_order(alice.user_id, 1000, payment_reference="pay_1") as draft:
        await draft.add_order_item(product.id, "Mug", 2, 500)

    invoice = ok(await orders.invoice(draft.order_id, alice.user_id))
    assert invoice.order.payment_reference == "pay_1"
    assert len(invoice.items) == 1
    assert ok(await inventory.available(product.id)) == 2
    paid = ok(await orders.find_by_payment_reference("pay_1"))
    assert paid.id == draft.order_id
    assert paid.user_id == alice.user_id


async def test_open_order_rolls_back_on_failed_item(
    orders: OrderEngine,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    a = await make_product("A", price=100, quantity=5)
    b = await make_product("B", price=100, quantity=1)

    with pytest.raises(InsufficientStock):
        async with orders.open_order(alice.user_id, 300) as draft:
            await draft.add_order_item(a.id, "A", 1, 100)
            await draft.add_order_item(b.id, "B", 2, 100)

    assert ok(await orders.orders_for_user(alice.user_id)) == []
    assert ok(await inventory.available(a.id)) == 5
    assert ok(await inventory.available(b.id)) == 1


async def test_open_order_requires_matching_total(
    orders: OrderEngine,
    inventory: InventoryStore,
    alice: AuthContext,
    make_product,
) -> None:
    product = await make_product(price=100, quantity=5)

    with pytest.raises(ValidationError):
        async with orders.open_order(alice.user_id, 999) as draft:
            await draft.add_order_item(product.id, "Mug", 1, 100)

    with pytest.raises(EmptyCart):
        async with orders.open_order(alice.user_id, 0):
            pass

    assert ok(await orders.orders_for_user(alice.user_id)) == []
    assert ok(await inventory.available(product.id)) == 5


async def test_draft_unusable_after_close(
    orders: OrderEngine,
    alice: AuthContext,
    make_product,
) -> None:
    product = await make_product(price=100, quantity=5)

    async with orders.open_order(alice.user_id, 100) as draft:
        await draft.add_order_item(product.id, "Mug", 1, 100)

    with pytest.raises(RuntimeError):
        await draft.add_order_item(product.id, "Mug", 1, 100)


# ═══════════════════════════════════════════════════════════════════════════════
# Read side
# ═══════════════════════════════════════════════════════════════════════════════

async def test_history_newest_first_and_invoice_ownership(
    orders: OrderEngine,
    carts: CartService,
    alice: AuthContext,
    bob: AuthContext,
    make_product,
) -> None:
    product = await make_product(quantity=10)
    first = ok(await orders.create_order_from_cart(alice.user_id, await _fill_cart(carts, alice, (product.id, 1))))
    second = ok(await orders.create_order_from_cart(alice.user_id, await _fill_cart(carts, alice, (product.id, 2))))

    assert [o.id for o in ok(await orders.orders_for_user(alice.user_id))] == [second, first]
    assert ok(await orders.orders_for_user(bob.user_id)) == []
    assert isinstance(err(await orders.invoice(first, bob.user_id)), NotFound)
    assert ok(await orders.find_by_payment_reference("nope")) is None
