import stripe
from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from marketplace.commission import commission_for
from marketplace.domain import IntentStatus
from marketplace.errors import InvalidRequest
from marketplace.ledger import PaymentIntentLedger
from marketplace.logging_config import get_logger
from marketplace.schemas import CommissionRequest, ConfirmPaymentRequest, PaymentIntentRequest

logger = get_logger(__name__)

router = APIRouter()

WEBHOOK_OUTCOMES = {
    "payment_intent.succeeded": IntentStatus.SUCCEEDED,
    "payment_intent.payment_failed": IntentStatus.FAILED,
}


def get_ledger(request: Request) -> PaymentIntentLedger:
    return request.app.state.ledger


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/create-payment-intent")
def create_payment_intent(
    body: PaymentIntentRequest,
    ledger: PaymentIntentLedger = Depends(get_ledger)
):
    intent = ledger.create(body.amount, body.currency)
    return intent.to_response()


@router.post("/confirm-payment")
def confirm_payment(
    body: ConfirmPaymentRequest,
    ledger: PaymentIntentLedger = Depends(get_ledger)
):
    result = ledger.confirm(body.payment_intent_id)
    return result.to_response()


@router.post("/calculate-commission")
def calculate_commission(body: CommissionRequest, request: Request):
    split = commission_for(body.price, body.category, request.app.state.settings.commission_rates)
    return {
        "price": body.price,
        "category": body.category,
        "commissionRate": split.rate,
        "commission": split.commission,
        "sellerAmount": split.seller_amount,
    }


@router.post("/webhook")
async def stripe_webhook(request: Request, stripe_signature: str = Header(None)):
    payload = await request.body()
    secret = request.app.state.settings.stripe_webhook_secret
    if not secret:
        raise InvalidRequest("Webhook signing secret is not configured")

    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, secret)
    except ValueError:
        raise InvalidRequest("Invalid payload")
    except stripe.SignatureVerificationError:
        raise InvalidRequest("Invalid signature")

    outcome = WEBHOOK_OUTCOMES.get(event["type"])
    if outcome is not None:
        intent_id = event["data"]["object"]["id"]
        intent = await run_in_threadpool(
            request.app.state.ledger.record_outcome, intent_id, outcome
        )
        if intent is None:
            logger.warning("webhook_unknown_intent", intent_id=intent_id, event_type=event["type"])

    return {"ok": True}
