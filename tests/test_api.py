from fastapi.testclient import TestClient

from conftest import make_settings
from marketplace.main import create_app


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_payment_intent(client):
    response = client.post("/create-payment-intent", json={"amount": 49.99, "currency": "USD"})

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"clientSecret", "id", "amount", "currency", "status", "created"}
    assert body["amount"] == 4999
    assert body["currency"] == "usd"
    assert body["status"] == "requires_payment_method"
    assert body["id"].startswith("pi_")
    assert isinstance(body["created"], int)


def test_create_payment_intent_invalid_amount(client):
    response = client.post("/create-payment-intent", json={"amount": 0, "currency": "usd"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "Invalid amount. Please provide a positive number.",
        "code": "invalid_amount",
    }


def test_create_payment_intent_unsupported_currency(client):
    response = client.post("/create-payment-intent", json={"amount": 10, "currency": "jpy"})

    assert response.status_code == 400
    assert response.json()["code"] == "unsupported_currency"


def test_create_payment_intent_missing_currency(client):
    response = client.post("/create-payment-intent", json={"amount": 10})

    assert response.status_code == 400
    assert response.json()["code"] == "unsupported_currency"


def test_confirm_payment_is_idempotent(client):
    intent = client.post("/create-payment-intent", json={"amount": 12, "currency": "eur"}).json()

    first = client.post("/confirm-payment", json={"paymentIntentId": intent["id"]})
    second = client.post("/confirm-payment", json={"paymentIntentId": intent["id"]})

    assert first.status_code == 200
    assert first.json() == {"success": True, "status": "succeeded", "id": intent["id"]}
    assert second.json() == first.json()


def test_confirm_payment_reports_failure():
    app = create_app(make_settings(mock_payment_outcome="failed"))
    with TestClient(app) as client:
        intent = client.post("/create-payment-intent", json={"amount": 12, "currency": "gbp"}).json()
        response = client.post("/confirm-payment", json={"paymentIntentId": intent["id"]})

    assert response.status_code == 200
    assert response.json() == {"success": False, "status": "failed", "id": intent["id"]}


def test_confirm_payment_unknown_id(client):
    response = client.post("/confirm-payment", json={"paymentIntentId": "pi_nope"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_intent_id"


def test_confirm_payment_missing_id(client):
    response = client.post("/confirm-payment", json={})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_intent_id"


def test_malformed_body_is_a_400(client):
    response = client.post("/confirm-payment", json=["pi_123"])

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


def test_calculate_commission(client):
    response = client.post("/calculate-commission", json={"price": 200, "category": "digital"})

    assert response.status_code == 200
    assert response.json() == {
        "price": 200,
        "category": "digital",
        "commissionRate": 0.01,
        "commission": 2,
        "sellerAmount": 198,
    }


def test_calculate_commission_unknown_category(client):
    response = client.post("/calculate-commission", json={"price": 100, "category": "unknown-category"})

    assert response.status_code == 400
    assert response.json()["code"] == "unknown_category"


def test_calculate_commission_uses_configured_rates():
    app = create_app(make_settings(commission_rates={"premium": 0.05}))
    with TestClient(app) as client:
        response = client.post("/calculate-commission", json={"price": 100, "category": "premium"})
        missing = client.post("/calculate-commission", json={"price": 100, "category": "general"})

    assert response.json()["commission"] == 5
    assert response.json()["sellerAmount"] == 95
    assert missing.status_code == 400


def test_unexpected_errors_do_not_leak_details(app, mocker):
    mocker.patch.object(app.state.ledger, "create", side_effect=RuntimeError("db password is hunter2"))

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/create-payment-intent", json={"amount": 1, "currency": "usd"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "code": "internal_error"}


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = client.get("/health")
    assert generated.headers["X-Request-ID"]


def test_create_payment_intent_huge_amount_is_a_400(client):
    response = client.post("/create-payment-intent", json={"amount": 1e30, "currency": "usd"})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_amount"


def test_unknown_route_uses_error_shape(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "code": "not_found"}


def test_wrong_method_uses_error_shape(client):
    response = client.delete("/health")

    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed", "code": "method_not_allowed"}
    assert "GET" in response.headers["allow"]
