"""
Payment gateway boundary.

The gateway is an external collaborator. Its methods raise on transport
failure; the orchestrator lifts them with ``L.catching_async``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Protocol

from storefront._types import Cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    reference: str
    amount_cents: Cents
    confirmed: bool
    provider: str = "fake"


class PaymentGateway(Protocol):
    async def create_payment(self, amount_cents: Cents, currency: str) -> str:
        """Open a payment the customer approves on the gateway side; returns its reference."""
        ...

    async def charge(self, amount_cents: Cents, currency: str, customer: str) -> PaymentConfirmation:
        """Charge immediately, return the confirmation (may be unconfirmed)."""
        ...

    async def capture(self, reference: str) -> PaymentConfirmation:
        """Capture a payment the customer approved on the gateway side."""
        ...

    async def refund(self, reference: str) -> None:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Simulated gateway
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FakeGateway:
    """
    In-process gateway for development and tests.

    ``create_payment`` opens a payment and treats it as approved by the
    customer straight away; ``approve(reference, amount)`` does the same for
    a reference made up by the caller. ``capture`` then confirms it.
    """

    decline: bool = False
    fail_with: Exception | None = None
    approved: dict[str, Cents] = field(default_factory=dict)
    charges: list[PaymentConfirmation] = field(default_factory=list)
    captures: list[str] = field(default_factory=list)
    refunds: list[str] = field(default_factory=list)

    def approve(self, reference: str, amount_cents: Cents) -> None:
        self.approved[reference] = amount_cents

    async def create_payment(self, amount_cents: Cents, currency: str) -> str:
        if self.fail_with is not None:
            raise self.fail_with

        reference = f"PAY-{uuid.uuid4().hex[:12].upper()}"
        self.approve(reference, amount_cents)
        logger.info("Payment %s created for %.2f %s", reference, amount_cents / 100, currency)
        return reference

    async def charge(self, amount_cents: Cents, currency: str, customer: str) -> PaymentConfirmation:
        if self.fail_with is not None:
            raise self.fail_with

        confirmation = PaymentConfirmation(
            reference=f"ch_{uuid.uuid4().hex[:16]}",
            amount_cents=amount_cents,
            confirmed=not self.decline,
        )
        self.charges.append(confirmation)
        logger.info(
            "Charging %.2f %s to %s: %s",
            amount_cents / 100,
            currency,
            customer,
            "confirmed" if confirmation.confirmed else "declined",
        )
        return confirmation

    async def capture(self, reference: str) -> PaymentConfirmation:
        if self.fail_with is not None:
            raise self.fail_with

        self.captures.append(reference)
        amount = self.approved.get(reference)
        confirmed = amount is not None and not self.decline
        logger.info("Capture %s: %s", reference, "completed" if confirmed else "not completed")
        return PaymentConfirmation(
            reference=reference,
            amount_cents=amount or 0,
            confirmed=confirmed,
        )

    async def refund(self, reference: str) -> None:
        self.refunds.append(reference)
        logger.warning("Refunded %s", reference)


__all__ = ("PaymentConfirmation", "PaymentGateway", "FakeGateway")
