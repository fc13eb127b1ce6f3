import asyncio

from storefront.errors import InsufficientStock, NotFound, ValidationError
from storefront.inventory import InventoryStore, ProductData

from tests._helpers import ok, err, is_ok


async def test_create_and_get_product(inventory: InventoryStore, make_product) -> None:
    created = await make_product("Kettle", price=2599, quantity=4, image_ref="kettle.png")

    product = ok(await inventory.get_product(created.id))
    assert product.name == "Kettle"
    assert product.unit_price_cents == 2599
    assert product.quantity_on_hand == 4
    assert product.image_ref == "kettle.png"
    assert product.in_stock


async def test_create_product_validates(inventory: InventoryStore) -> None:
    assert isinstance(err(await inventory.create_product(ProductData("  ", 100, 1))), ValidationError)
    assert isinstance(err(await inventory.create_product(ProductData("Cup", -1, 1))), ValidationError)
    assert isinstance(err(await inventory.create_product(ProductData("Cup", 100, -3))), ValidationError)
    assert ok(await inventory.list_products()) == []


async def test_unknown_product_is_not_found(inventory: InventoryStore) -> None:
    e = err(await inventory.get_product(404))
    assert isinstance(e, NotFound)
    assert e.entity == "Product"
    assert isinstance(err(await inventory.delete_product(404)), NotFound)
    assert isinstance(
        err(await inventory.update_product(404, ProductData("x", 1, 1))), NotFound
    )


async def test_update_keeps_image_when_none_given(inventory: InventoryStore, make_product) -> None:
    created = await make_product("Lamp", image_ref="lamp.jpg")

    updated = ok(await inventory.update_product(created.id, ProductData("Desk lamp", 1500, 7)))
    assert updated.name == "Desk lamp"
    assert updated.image_ref == "lamp.jpg"

    replaced = ok(
        await inventory.update_product(created.id, ProductData("Desk lamp", 1500, 7, "new.jpg"))
    )
    assert replaced.image_ref == "new.jpg"


async def test_list_and_delete(inventory: InventoryStore, make_product) -> None:
    a = await make_product("A")
    b = await make_product("B")

    assert [p.id for p in ok(await inventory.list_products())] == [a.id, b.id]
    ok(await inventory.delete_product(a.id))
    assert [p.name for p in ok(await inventory.list_products())] == ["B"]


async def test_decrement_stock(inventory: InventoryStore, make_product) -> None:
    product = await make_product(quantity=5)

    ok(await inventory.decrement_stock(product.id, 3))
    assert ok(await inventory.available(product.id)) == 2

    e = err(await inventory.decrement_stock(product.id, 3))
    assert isinstance(e, InsufficientStock)
    assert e.product_name == product.name
    assert ok(await inventory.available(product.id)) == 2


async def test_decrement_stock_rejects_bad_input(inventory: InventoryStore, make_product) -> None:
    product = await make_product(quantity=5)

    assert isinstance(err(await inventory.decrement_stock(product.id, 0)), ValidationError)
    assert isinstance(err(await inventory.decrement_stock(999, 1)), NotFound)
    assert ok(await inventory.available(product.id)) == 5


async def test_concurrent_decrements_never_go_negative(
    inventory: InventoryStore,
    make_product,
) -> None:
    product = await make_product(quantity=3)

    results = await asyncio.gather(*(inventory.decrement_stock(product.id, 1) for _ in range(6)))

    assert sum(is_ok(r) for r in results) == 3
    assert all(isinstance(err(r), InsufficientStock) for r in results if not is_ok(r))
    assert ok(await inventory.available(product.id)) == 0
