"""
Error taxonomy.

Every component returns ``Result[T, ShopError]``. Inside a database
transaction the same errors are raised to force a rollback and turned back
into ``Error(...)`` at the component boundary.
"""

from __future__ import annotations

from dataclasses import dataclass


class ShopError(Exception):
    """Base for every domain failure."""

    code: str = "SHOP_ERROR"

    @property
    def message(self) -> str:
        return str(self)


@dataclass(eq=False)
class NotFound(ShopError):
    entity: str
    id: int | str

    code = "NOT_FOUND"

    def __str__(self) -> str:
        return f"{self.entity}:{self.id} not found"


@dataclass(eq=False)
class InsufficientStock(ShopError):
    product_name: str

    code = "INSUFFICIENT_STOCK"

    def __str__(self) -> str:
        return f'Insufficient stock for "{self.product_name}"'


@dataclass(eq=False)
class EmptyCart(ShopError):
    code = "EMPTY_CART"

    def __str__(self) -> str:
        return "Cart is empty"


@dataclass(eq=False)
class Unauthorized(ShopError):
    reason: str = "Please log in to view this resource"

    code = "UNAUTHORIZED"

    def __str__(self) -> str:
        return self.reason


@dataclass(eq=False)
class Forbidden(Unauthorized):
    """Logged in, but the role does not allow it."""

    reason: str = "You do not have permission to access this resource"

    code = "FORBIDDEN"


@dataclass(eq=False)
class ValidationError(ShopError):
    reason: str

    code = "VALIDATION_ERROR"

    def __str__(self) -> str:
        return self.reason


@dataclass(eq=False)
class PersistenceError(ShopError):
    reason: str

    code = "PERSISTENCE_ERROR"

    def __str__(self) -> str:
        return self.reason


@dataclass(eq=False)
class PaymentDeclined(ShopError):
    reference: str
    reason: str = "Payment not completed"

    code = "PAYMENT_DECLINED"

    def __str__(self) -> str:
        return f"{self.reason} ({self.reference})"


__all__ = (
    "ShopError",
    "NotFound",
    "InsufficientStock",
    "EmptyCart",
    "Unauthorized",
    "Forbidden",
    "ValidationError",
    "PersistenceError",
    "PaymentDeclined",
)
