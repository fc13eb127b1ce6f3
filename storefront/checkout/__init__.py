"""
Checkout — orchestration between cart, orders and the payment gateway.

    from storefront import checkout

    orchestrator = checkout.CheckoutOrchestrator(order_engine, checkout.FakeGateway())
    result = await orchestrator.checkout(ctx, items)
"""

from storefront.checkout._gateway import PaymentConfirmation, PaymentGateway, FakeGateway
from storefront.checkout._saga import Step, Then, SagaFailure, run
from storefront.checkout._orchestrator import CheckoutOrchestrator

__all__ = (
    "PaymentConfirmation",
    "PaymentGateway",
    "FakeGateway",
    "Step",
    "Then",
    "SagaFailure",
    "run",
    "CheckoutOrchestrator",
)
