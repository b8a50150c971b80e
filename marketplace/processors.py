"""
Payment-processor clients.

The ledger only asks a processor two things: open an intent, and report where
that intent ended up. ``confirm`` returns ``"succeeded"``, ``"failed"`` or
``None`` while the processor has not reached a terminal state.
"""
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import stripe

from marketplace.domain import IntentStatus, PaymentIntent
from marketplace.errors import PaymentProcessorError
from marketplace.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ProcessorIntent:
    id: str
    client_secret: str


class PaymentProcessor(ABC):
    name = "base"

    @abstractmethod
    def create_intent(
        self, amount_minor: int, currency: str, payment_method: Optional[str] = None
    ) -> ProcessorIntent: ...

    @abstractmethod
    def confirm(self, intent: PaymentIntent) -> Optional[IntentStatus]: ...


class MockProcessor(PaymentProcessor):
    """Offline processor that always reports the same configured outcome."""

    name = "mock"

    def __init__(self, outcome: str = "succeeded"):
        self.outcome = IntentStatus(outcome)

    def create_intent(self, amount_minor, currency, payment_method=None):
        intent_id = "pi_" + secrets.token_hex(12)
        return ProcessorIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{secrets.token_urlsafe(24)}",
        )

    def confirm(self, intent):
        return self.outcome


class StripeProcessor(PaymentProcessor):
    name = "stripe"

    def __init__(self, api_key: str):
        stripe.api_key = api_key

    def create_intent(self, amount_minor, currency, payment_method=None):
        params = {"amount": amount_minor, "currency": currency}
        if payment_method:
            params.update(payment_method=payment_method, confirm=True,
                          automatic_payment_methods={"enabled": True, "allow_redirects": "never"})
        else:
            params["automatic_payment_methods"] = {"enabled": True}
        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as exc:
            logger.error("stripe_create_failed", error=str(exc))
            raise PaymentProcessorError("Payment processing failed")
        return ProcessorIntent(id=intent.id, client_secret=intent.client_secret)

    def confirm(self, intent):
        try:
            remote = stripe.PaymentIntent.retrieve(intent.id)
        except stripe.StripeError as exc:
            logger.error("stripe_retrieve_failed", intent_id=intent.id, error=str(exc))
            raise PaymentProcessorError("Payment processing failed")
        return self.map_status(remote)

    @staticmethod
    def map_status(remote) -> Optional[IntentStatus]:
        status = remote.status
        if status == "succeeded":
            return IntentStatus.SUCCEEDED
        if status == "canceled":
            return IntentStatus.FAILED
        if status == "requires_payment_method" and getattr(remote, "last_payment_error", None):
            return IntentStatus.FAILED
        return None


def build_processor(settings) -> PaymentProcessor:
    if settings.payment_processor == "stripe":
        return StripeProcessor(settings.stripe_secret_key)
    return MockProcessor(settings.mock_payment_outcome)
