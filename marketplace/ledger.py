"""
Payment-intent ledger.

Intents are created in ``requires_payment_method`` and move exactly once to a
terminal status reported by the payment processor. Confirming a terminal
intent replays the stored status. Per-intent locks serialize confirmations in
this process; the store's compare-and-swap covers processes sharing a database.
"""
import re
import threading
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation, Overflow, ROUND_HALF_UP
from typing import Dict, Optional

from marketplace.domain import (
    SUPPORTED_CURRENCIES,
    ConfirmationResult,
    IntentStatus,
    PaymentIntent,
)
from marketplace.errors import InvalidAmount, InvalidIntentId, UnsupportedCurrency
from marketplace.logging_config import get_logger
from marketplace.processors import PaymentProcessor
from marketplace.storage import IntentStore

logger = get_logger(__name__)

INTENT_ID_PATTERN = re.compile(r"^pi_[A-Za-z0-9]+$")

# Largest amount Stripe accepts for a single charge, in minor units.
MAX_MINOR_UNITS = 99999999


def to_minor_units(amount) -> int:
    """Parse a positive amount and convert it to minor units, rounding half up."""
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("Invalid amount. Please provide a positive number.")
    try:
        value = Decimal(str(amount).strip())
        if not value.is_finite() or value <= 0:
            raise InvalidAmount("Invalid amount. Please provide a positive number.")
        minor = int((value * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except (InvalidOperation, Overflow):
        raise InvalidAmount("Invalid amount. Please provide a positive number.")
    if minor <= 0:
        raise InvalidAmount("Invalid amount. Amount is below the smallest currency unit.")
    if minor > MAX_MINOR_UNITS:
        raise InvalidAmount("Invalid amount. Amount exceeds the maximum charge.")
    return minor


def normalize_currency(currency) -> str:
    if not isinstance(currency, str) or currency.lower() not in SUPPORTED_CURRENCIES:
        raise UnsupportedCurrency(
            "Invalid currency. Supported currencies are USD, EUR, and GBP."
        )
    return currency.lower()


def validate_intent_id(intent_id) -> str:
    if not isinstance(intent_id, str) or not INTENT_ID_PATTERN.match(intent_id):
        raise InvalidIntentId("Invalid payment intent ID. Please provide a valid ID.")
    return intent_id


class PaymentIntentLedger:
    def __init__(self, store: IntentStore, processor: PaymentProcessor):
        self.store = store
        self.processor = processor
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _intent_lock(self, intent_id: str):
        with self._registry_lock:
            lock = self._locks.setdefault(intent_id, threading.Lock())
        with lock:
            yield

    def _release_lock(self, intent_id: str):
        # Terminal intents never mutate again; the CAS in the store still guards them.
        with self._registry_lock:
            self._locks.pop(intent_id, None)

    def create(self, amount, currency, payment_method: Optional[str] = None) -> PaymentIntent:
        amount_minor = to_minor_units(amount)
        currency = normalize_currency(currency)

        remote = self.processor.create_intent(amount_minor, currency, payment_method)
        intent = PaymentIntent(
            id=validate_intent_id(remote.id),
            client_secret=remote.client_secret,
            amount_minor_units=amount_minor,
            currency=currency,
        )
        self.store.add(intent)
        logger.info(
            "payment_intent_created",
            intent_id=intent.id,
            amount=amount_minor,
            currency=currency,
            processor=self.processor.name,
        )
        return intent

    def get(self, intent_id) -> PaymentIntent:
        intent = self.store.get(validate_intent_id(intent_id))
        if intent is None:
            raise InvalidIntentId("Invalid payment intent ID. Please provide a valid ID.")
        return intent

    def confirm(self, intent_id) -> ConfirmationResult:
        intent_id = validate_intent_id(intent_id)
        with self._intent_lock(intent_id):
            intent = self.store.get(intent_id)
            if intent is None or intent.status.is_terminal:
                self._release_lock(intent_id)
            if intent is None:
                raise InvalidIntentId("Invalid payment intent ID. Please provide a valid ID.")
            if intent.status.is_terminal:
                logger.info("payment_intent_replayed", intent_id=intent_id,
                            status=intent.status.value)
                return self._result(intent.status, intent_id)

            # Processor errors propagate and leave the record retryable.
            outcome = self.processor.confirm(intent)
            if outcome is None or not IntentStatus(outcome).is_terminal:
                return self._result(intent.status, intent_id)

            status = self._apply(intent_id, IntentStatus(outcome))
        logger.info("payment_intent_confirmed", intent_id=intent_id, status=status.value)
        return self._result(status, intent_id)

    def record_outcome(self, intent_id, outcome) -> Optional[PaymentIntent]:
        """Apply a terminal status pushed by the processor (e.g. a webhook)."""
        outcome = IntentStatus(outcome)
        if not outcome.is_terminal:
            raise ValueError(f"{outcome.value} is not a terminal status")
        if not isinstance(intent_id, str) or not INTENT_ID_PATTERN.match(intent_id):
            return None
        with self._intent_lock(intent_id):
            intent = self.store.get(intent_id)
            if intent is None or intent.status.is_terminal:
                self._release_lock(intent_id)
            if intent is None:
                return None
            if not intent.status.is_terminal:
                intent.status = self._apply(intent_id, outcome)
                logger.info("payment_intent_recorded", intent_id=intent_id,
                            status=intent.status.value)
            return intent

    def _apply(self, intent_id: str, outcome: IntentStatus) -> IntentStatus:
        applied = self.store.transition(
            intent_id, IntentStatus.REQUIRES_PAYMENT_METHOD, outcome
        )
        self._release_lock(intent_id)
        if applied:
            return outcome
        # Another process won the race; report what it stored.
        return self.store.get(intent_id).status

    @staticmethod
    def _result(status: IntentStatus, intent_id: str) -> ConfirmationResult:
        return ConfirmationResult(
            success=status is IntentStatus.SUCCEEDED, status=status, id=intent_id
        )
