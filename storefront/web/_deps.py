"""
FastAPI dependencies — one Database per process, components per request.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from kungfu import Ok, Error

from storefront import auth
from storefront.auth import AuthContext, Role, UserStore
from storefront.cart import CartService, CartSession
from storefront.checkout import CheckoutOrchestrator, PaymentGateway
from storefront.config import Settings
from storefront.db import Database
from storefront.inventory import InventoryStore
from storefront.orders import OrderEngine
from storefront.web._errors import expect


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


SettingsDep = Annotated[Settings, Depends(get_settings)]
DatabaseDep = Annotated[Database, Depends(get_database)]


def get_users(db: DatabaseDep, settings: SettingsDep) -> UserStore:
    return UserStore(db, rounds=settings.password_rounds)


def get_inventory(db: DatabaseDep) -> InventoryStore:
    return InventoryStore(db)


def get_carts(db: DatabaseDep) -> CartService:
    return CartService(db)


def get_orders(db: DatabaseDep) -> OrderEngine:
    return OrderEngine(db)


def get_checkout(
    db: DatabaseDep,
    settings: SettingsDep,
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(OrderEngine(db), gateway, currency=settings.currency)


def get_cart_session(request: Request) -> CartSession:
    return CartSession(request.session)


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════

def optional_user(request: Request) -> AuthContext | None:
    match auth.authorize(request.session.get(auth.IDENTITY_KEY)):
        case Ok(ctx):
            return ctx
        case Error(_):
            return None


def current_user(request: Request) -> AuthContext:
    return expect(auth.authorize(request.session.get(auth.IDENTITY_KEY)))


def current_admin(request: Request) -> AuthContext:
    return expect(auth.authorize(request.session.get(auth.IDENTITY_KEY), require=Role.ADMIN))


Users = Annotated[UserStore, Depends(get_users)]
Inventory = Annotated[InventoryStore, Depends(get_inventory)]
Carts = Annotated[CartService, Depends(get_carts)]
Orders = Annotated[OrderEngine, Depends(get_orders)]
Checkout = Annotated[CheckoutOrchestrator, Depends(get_checkout)]
SessionCart = Annotated[CartSession, Depends(get_cart_session)]
MaybeUser = Annotated[AuthContext | None, Depends(optional_user)]
CurrentUser = Annotated[AuthContext, Depends(current_user)]
CurrentAdmin = Annotated[AuthContext, Depends(current_admin)]


__all__ = (
    "SettingsDep",
    "Users",
    "Inventory",
    "Carts",
    "Orders",
    "Checkout",
    "SessionCart",
    "MaybeUser",
    "CurrentUser",
    "CurrentAdmin",
)
