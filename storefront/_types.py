"""
Core types for storefront.

Re-exports from kungfu + identifier aliases shared by every component.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Identifiers
# ═══════════════════════════════════════════════════════════════════════════════

type UserId = int
type ProductId = int
type OrderId = int

type Cents = int
"""Money in minor units (no floats anywhere near prices)."""

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Aliases
    "UserId",
    "ProductId",
    "OrderId",
    "Cents",
    "Lazy",
)
