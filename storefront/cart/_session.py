"""
Session mirror of the cart.

The database is the source of truth. The session copy is a cache: filled on
login, overwritten after every successful mutation, dropped on logout. It is
never written back to the store.
"""

from __future__ import annotations

from collections.abc import MutableMapping, Sequence
from dataclasses import asdict
from typing import Any

from storefront.cart._types import CartItem

SESSION_KEY = "cart"


class CartSession:
    def __init__(self, session: MutableMapping[str, Any]) -> None:
        self._session = session

    def store(self, items: Sequence[CartItem]) -> None:
        self._session[SESSION_KEY] = [asdict(item) for item in items]

    def items(self) -> list[CartItem]:
        return [CartItem(**raw) for raw in self._session.get(SESSION_KEY, [])]

    def drop(self) -> None:
        self._session.pop(SESSION_KEY, None)


__all__ = ("CartSession", "SESSION_KEY")
