from collections.abc import AsyncIterator, Awaitable, Callable

import pytest

from storefront.auth import AuthContext, Role, UserStore
from storefront.cart import CartService, CartStore
from storefront.checkout import CheckoutOrchestrator, FakeGateway
from storefront.db import Database, create_database
from storefront.inventory import InventoryStore, Product, ProductData
from storefront.orders import OrderEngine

from tests._helpers import ok

type MakeProduct = Callable[..., Awaitable[Product]]
type MakeUser = Callable[..., Awaitable[AuthContext]]


@pytest.fixture
async def database(tmp_path) -> AsyncIterator[Database]:
    db = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}", busy_timeout=10.0)
    yield db
    await db.dispose()


@pytest.fixture
def users(database: Database) -> UserStore:
    return UserStore(database, rounds=4)


@pytest.fixture
def inventory(database: Database) -> InventoryStore:
    return InventoryStore(database)


@pytest.fixture
def carts(database: Database) -> CartService:
    return CartService(database)


@pytest.fixture
def cart_store(database: Database) -> CartStore:
    return CartStore(database)


@pytest.fixture
def orders(database: Database) -> OrderEngine:
    return OrderEngine(database)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(orders: OrderEngine, gateway: FakeGateway) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(orders, gateway, currency="SGD")


@pytest.fixture
def make_user(users: UserStore) -> MakeUser:
    counter = 0

    async def _make(name: str | None = None, role: Role = Role.CUSTOMER) -> AuthContext:
        nonlocal counter
        counter += 1
        username = name or f"user{counter}"
        user = ok(await users.register(username, f"{username}@example.com", "secret", role))
        return user.context()

    return _make


@pytest.fixture
async def alice(make_user: MakeUser) -> AuthContext:
    return await make_user("alice")


@pytest.fixture
async def bob(make_user: MakeUser) -> AuthContext:
    return await make_user("bob")


@pytest.fixture
def make_product(inventory: InventoryStore) -> MakeProduct:
    async def _make(
        name: str = "Mug",
        price: int = 1000,
        quantity: int = 10,
        image_ref: str | None = None,
    ) -> Product:
        return ok(await inventory.create_product(ProductData(name, price, quantity, image_ref)))

    return _make
