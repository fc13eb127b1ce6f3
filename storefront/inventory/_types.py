"""
Inventory types.
"""

from __future__ import annotations

from dataclasses import dataclass

from kungfu import Result, Ok, Error

from storefront._types import ProductId, Cents
from storefront.errors import ValidationError


@dataclass(frozen=True, slots=True)
class Product:
    id: ProductId
    name: str
    unit_price_cents: Cents
    quantity_on_hand: int
    image_ref: str | None = None

    @property
    def in_stock(self) -> bool:
        return self.quantity_on_hand > 0


@dataclass(frozen=True, slots=True)
class ProductData:
    """
    Admin input for create / update.

    Note: image_ref is whatever the upload collaborator handed us. On update,
    None means "keep the current image".
    """

    name: str
    unit_price_cents: Cents
    quantity_on_hand: int
    image_ref: str | None = None

    def validate(self) -> Result[ProductData, ValidationError]:
        if not self.name.strip():
            return Error(ValidationError("Product name is required."))
        if self.unit_price_cents < 0:
            return Error(ValidationError("Price must be >= 0."))
        if self.quantity_on_hand < 0:
            return Error(ValidationError("Quantity must be >= 0."))
        return Ok(self)


@dataclass(frozen=True, slots=True)
class StockLevel:
    product_id: ProductId
    name: str
    quantity_on_hand: int


__all__ = ("Product", "ProductData", "StockLevel")
