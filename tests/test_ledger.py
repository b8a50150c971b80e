import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from marketplace.domain import IntentStatus
from marketplace.errors import (
    InvalidAmount,
    InvalidIntentId,
    PaymentProcessorError,
    UnsupportedCurrency,
)
from marketplace.ledger import PaymentIntentLedger, to_minor_units
from marketplace.processors import MockProcessor
from marketplace.storage import MemoryIntentStore


class ScriptedProcessor(MockProcessor):
    """Reports outcomes from a script, one per confirm call, counting calls."""

    def __init__(self, *outcomes, delay=0.0):
        super().__init__()
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def confirm(self, intent):
        time.sleep(self.delay)
        with self._lock:
            self.calls += 1
            outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def store():
    return MemoryIntentStore()


@pytest.fixture
def ledger(store):
    return PaymentIntentLedger(store, MockProcessor())


@pytest.mark.parametrize("amount, minor", [
    (10, 1000),
    (19.99, 1999),
    ("25.5", 2550),
    (0.01, 1),
    (1234.567, 123457),
])
@pytest.mark.parametrize("currency", ["usd", "eur", "gbp"])
def test_create_records_pending_intent(ledger, store, amount, minor, currency):
    intent = ledger.create(amount, currency)

    assert intent.status is IntentStatus.REQUIRES_PAYMENT_METHOD
    assert intent.amount_minor_units == minor
    assert intent.currency == currency
    assert intent.id.startswith("pi_")
    assert store.get(intent.id) == intent


def test_create_normalizes_currency_case(ledger):
    assert ledger.create(5, "GBP").currency == "gbp"


def test_client_secret_is_not_derivable_from_id(ledger):
    first = ledger.create(5, "usd")
    second = ledger.create(5, "usd")
    assert first.client_secret != first.id
    assert first.client_secret.split("_secret_")[1] != second.client_secret.split("_secret_")[1]


@pytest.mark.parametrize("amount", [0, -5, None, "", "abc", "nan", float("inf"), True, 0.001])
def test_create_rejects_invalid_amount(ledger, store, amount):
    with pytest.raises(InvalidAmount):
        ledger.create(amount, "usd")


@pytest.mark.parametrize("currency", ["jpy", None, "", 42])
def test_create_rejects_unsupported_currency(ledger, currency):
    with pytest.raises(UnsupportedCurrency):
        ledger.create(10, currency)


def test_rounding_is_half_up():
    assert to_minor_units("0.125") == 13
    assert to_minor_units(2.5) == 250


@pytest.mark.parametrize("intent_id", ["pi_doesnotexist", "", None, "ch_123", "pi_", "pi_bad id"])
def test_confirm_unknown_or_malformed_id(ledger, intent_id):
    with pytest.raises(InvalidIntentId):
        ledger.confirm(intent_id)


def test_confirm_succeeds_and_replays(store):
    processor = ScriptedProcessor(IntentStatus.SUCCEEDED, IntentStatus.FAILED)
    ledger = PaymentIntentLedger(store, processor)
    intent = ledger.create(10, "usd")

    first = ledger.confirm(intent.id)
    second = ledger.confirm(intent.id)

    assert first.success is True
    assert first.status is IntentStatus.SUCCEEDED
    assert second == first
    assert processor.calls == 1
    assert store.get(intent.id).status is IntentStatus.SUCCEEDED


def test_confirm_records_failure(store):
    ledger = PaymentIntentLedger(store, MockProcessor("failed"))
    intent = ledger.create(10, "eur")

    result = ledger.confirm(intent.id)

    assert result.success is False
    assert result.status is IntentStatus.FAILED
    assert ledger.confirm(intent.id).status is IntentStatus.FAILED


def test_processor_error_leaves_intent_retryable(store):
    processor = ScriptedProcessor(PaymentProcessorError("down"), IntentStatus.SUCCEEDED)
    ledger = PaymentIntentLedger(store, processor)
    intent = ledger.create(10, "usd")

    with pytest.raises(PaymentProcessorError):
        ledger.confirm(intent.id)
    assert store.get(intent.id).status is IntentStatus.REQUIRES_PAYMENT_METHOD

    assert ledger.confirm(intent.id).status is IntentStatus.SUCCEEDED


def test_non_terminal_report_does_not_transition(store):
    processor = ScriptedProcessor(None)
    ledger = PaymentIntentLedger(store, processor)
    intent = ledger.create(10, "usd")

    result = ledger.confirm(intent.id)

    assert result.success is False
    assert result.status is IntentStatus.REQUIRES_PAYMENT_METHOD
    assert store.get(intent.id).status is IntentStatus.REQUIRES_PAYMENT_METHOD


def test_concurrent_confirms_transition_once(store):
    processor = ScriptedProcessor(IntentStatus.SUCCEEDED, IntentStatus.FAILED, delay=0.01)
    ledger = PaymentIntentLedger(store, processor)
    intent = ledger.create(42, "usd")

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: ledger.confirm(intent.id), range(32)))

    assert processor.calls == 1
    assert {r.status for r in results} == {IntentStatus.SUCCEEDED}
    assert store.get(intent.id).status is IntentStatus.SUCCEEDED
    assert ledger._locks == {}


def test_concurrent_confirms_on_different_intents_do_not_block_each_other(store):
    processor = ScriptedProcessor(IntentStatus.SUCCEEDED, delay=0.05)
    ledger = PaymentIntentLedger(store, processor)
    intents = [ledger.create(1, "usd") for _ in range(8)]

    started = time.monotonic()
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda i: ledger.confirm(i.id), intents))

    assert all(r.success for r in results)
    assert time.monotonic() - started < 0.05 * 8


def test_record_outcome_applies_once(ledger, store):
    intent = ledger.create(10, "usd")

    recorded = ledger.record_outcome(intent.id, IntentStatus.FAILED)
    again = ledger.record_outcome(intent.id, IntentStatus.SUCCEEDED)

    assert recorded.status is IntentStatus.FAILED
    assert again.status is IntentStatus.FAILED
    assert ledger.confirm(intent.id).status is IntentStatus.FAILED


def test_record_outcome_unknown_intent(ledger):
    assert ledger.record_outcome("pi_unknown", IntentStatus.SUCCEEDED) is None


def test_record_outcome_rejects_non_terminal(ledger):
    with pytest.raises(ValueError):
        ledger.record_outcome("pi_abc", IntentStatus.REQUIRES_PAYMENT_METHOD)


def test_get_returns_stored_intent(ledger):
    intent = ledger.create(3, "usd")
    assert ledger.get(intent.id) == intent
    with pytest.raises(InvalidIntentId):
        ledger.get("pi_missing")


@pytest.mark.parametrize("amount", [1e30, "1e26", 10 ** 40, 1000000.00])
def test_create_rejects_amounts_beyond_the_largest_charge(ledger, amount):
    with pytest.raises(InvalidAmount):
        ledger.create(amount, "usd")


def test_largest_charge_is_accepted(ledger):
    assert ledger.create("999999.99", "usd").amount_minor_units == 99999999
