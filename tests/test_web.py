from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from storefront.auth import Role, UserStore
from storefront.checkout import FakeGateway
from storefront.config import Settings
from storefront.web import create_app


@pytest.fixture
def web_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def client(tmp_path, web_gateway: FakeGateway) -> Iterator[TestClient]:
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'web.db'}",
        session_secret="test-secret",
        password_rounds=4,
    )
    with TestClient(create_app(settings, gateway=web_gateway)) as c:
        yield c


def _register_and_login(client: TestClient, name: str) -> dict:
    r = client.post("/register", json={"username": name, "email": f"{name}@example.com", "password": "pw"})
    assert r.status_code == 201
    r = client.post("/login", json={"email": f"{name}@example.com", "password": "pw"})
    assert r.status_code == 200
    return r.json()


def _make_admin(client: TestClient) -> None:
    database = client.app.state.database
    users = UserStore(database, rounds=4)
    client.portal.call(users.register, "root", "root@example.com", "pw", Role.ADMIN)
    r = client.post("/login", json={"email": "root@example.com", "password": "pw"})
    assert r.status_code == 200


def _create_product(client: TestClient, name: str, price: int, quantity: int) -> int:
    r = client.post(
        "/admin/products",
        json={"name": name, "unit_price_cents": price, "quantity_on_hand": quantity},
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_login_required(client: TestClient) -> None:
    r = client.get("/cart")
    assert r.status_code == 401
    assert r.json()["error"] == "UNAUTHORIZED"

    assert client.post("/checkout").status_code == 401


def test_bad_login(client: TestClient) -> None:
    r = client.post("/login", json={"email": "ghost@example.com", "password": "pw"})
    assert r.status_code == 401


def test_admin_routes_need_admin(client: TestClient) -> None:
    _register_and_login(client, "eve")
    r = client.post("/admin/products", json={"name": "x", "unit_price_cents": 1})
    assert r.status_code == 403


def test_catalogue_admin_crud(client: TestClient) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Mug", 1000, 5)

    r = client.put(
        f"/admin/products/{product_id}",
        json={"name": "Mug", "unit_price_cents": 1200, "quantity_on_hand": 4},
    )
    assert r.status_code == 200
    assert r.json()["unit_price_cents"] == 1200

    assert client.get(f"/products/{product_id}").json()["quantity_on_hand"] == 4
    assert [p["name"] for p in client.get("/products").json()] == ["Mug"]

    assert client.post("/admin/products", json={"name": "", "unit_price_cents": 1}).status_code == 422

    assert client.delete(f"/admin/products/{product_id}").status_code == 204
    assert client.get(f"/products/{product_id}").status_code == 404


def test_shopping_flow(client: TestClient) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Mug", 10, 2)
    client.post("/logout")

    _register_and_login(client, "alice")

    r = client.post(f"/cart/add/{product_id}", json={"quantity": 1})
    assert r.status_code == 200
    assert r.json()["outcome"] == "applied"

    r = client.post(f"/cart/add/{product_id}", json={"quantity": 5})
    body = r.json()
    assert body["outcome"] == "capped"
    assert body["effective_quantity"] == 2
    assert body["cart"]["total_cents"] == 20

    r = client.post("/checkout")
    assert r.status_code == 201
    order_id = r.json()["order_id"]

    assert client.get("/cart").json() == {"items": [], "total_cents": 0}
    assert client.get(f"/products/{product_id}").json()["quantity_on_hand"] == 0

    [order] = client.get("/orders").json()
    assert order["id"] == order_id
    invoice = client.get(f"/orders/{order_id}").json()
    assert invoice["items"][0]["quantity"] == 2

    assert client.post("/checkout").status_code == 409


def test_cart_survives_logout(client: TestClient) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Tea", 450, 9)
    client.post("/logout")

    _register_and_login(client, "bob")
    client.post(f"/cart/add/{product_id}", json={"quantity": 3})
    assert client.post("/logout").status_code == 204
    assert client.get("/cart").status_code == 401

    r = client.post("/login", json={"email": "bob@example.com", "password": "pw"})
    assert r.status_code == 200
    [item] = client.get("/cart").json()["items"]
    assert item["quantity"] == 3


def test_payment_callbacks(client: TestClient, web_gateway: FakeGateway) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Pot", 500, 10)
    client.post("/logout")
    _register_and_login(client, "carol")

    client.post(f"/cart/add/{product_id}", json={"quantity": 2})
    web_gateway.approve("PAY-9", 1000)
    r = client.post("/api/payments/PAY-9/capture")
    assert r.status_code == 201
    order_id = r.json()["order_id"]

    # replayed callback
    r = client.post("/api/payments/PAY-9/capture")
    assert r.status_code == 201
    assert r.json()["order_id"] == order_id

    # cart is empty now
    r = client.post("/api/payments/PAY-10/capture")
    assert r.status_code == 409

    client.post(f"/cart/add/{product_id}", json={"quantity": 1})
    r = client.post("/api/payments/charge")
    assert r.status_code == 201
    assert len(client.get("/orders").json()) == 2


def test_declined_charge(client: TestClient, web_gateway: FakeGateway) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Pot", 500, 10)
    client.post("/logout")
    _register_and_login(client, "dan")

    client.post(f"/cart/add/{product_id}", json={"quantity": 1})
    web_gateway.decline = True

    r = client.post("/api/payments/charge")
    assert r.status_code == 402
    assert r.json()["error"] == "PAYMENT_DECLINED"
    assert len(client.get("/cart").json()["items"]) == 1
    assert client.get("/orders").json() == []


def test_created_payment_is_captured(client: TestClient, web_gateway: FakeGateway) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Cup", 350, 10)
    client.post("/logout")
    _register_and_login(client, "erin")

    assert client.post("/api/payments").status_code == 409

    client.post(f"/cart/add/{product_id}", json={"quantity": 2})
    r = client.post("/api/payments")
    assert r.status_code == 201
    payment = r.json()
    assert payment["amount_cents"] == 700
    assert payment["currency"] == "SGD"

    r = client.post(f"/api/payments/{payment['reference']}/capture")
    assert r.status_code == 201
    [order] = client.get("/orders").json()
    assert order["id"] == r.json()["order_id"]
    assert web_gateway.refunds == []


def test_foreign_payment_reference_rejected(client: TestClient, web_gateway: FakeGateway) -> None:
    _make_admin(client)
    product_id = _create_product(client, "Cup", 350, 10)
    client.post("/logout")

    _register_and_login(client, "fay")
    client.post(f"/cart/add/{product_id}", json={"quantity": 1})
    reference = client.post("/api/payments").json()["reference"]
    assert client.post(f"/api/payments/{reference}/capture").status_code == 201
    client.post("/logout")

    _register_and_login(client, "gus")
    client.post(f"/cart/add/{product_id}", json={"quantity": 1})
    r = client.post(f"/api/payments/{reference}/capture")
    assert r.status_code == 422
    assert len(client.get("/cart").json()["items"]) == 1
    assert client.get("/orders").json() == []
    assert web_gateway.refunds == []
