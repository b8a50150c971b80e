import os

# marketplace.main builds a module-level app on import
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from marketplace.config import Settings
from marketplace.database import Base
from marketplace.main import create_app

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_marketplace.db"


def make_settings(**overrides):
    values = {
        "jwt_secret": "test-secret",
        "stripe_webhook_secret": "whsec_test",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def app():
    return create_app(make_settings())


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sql_app():
    app = create_app(make_settings(
        storage_backend="sql",
        database_url=SQLALCHEMY_DATABASE_URL,
        payment_processor="stripe",
        stripe_secret_key="sk_test_dummy",
    ))
    yield app
    engine = app.state.storage.engine
    Base.metadata.drop_all(bind=engine)
    app.state.storage.close()
    if os.path.exists("./test_marketplace.db"):
        os.remove("./test_marketplace.db")


@pytest.fixture
def sql_client(sql_app):
    with TestClient(sql_app) as c:
        yield c


SIGNUP_FIELDS = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "password": "s3cret-pass",
    "phone": "+44 20 7946 0000",
    "address": "12 Analytical St",
    "city": "London",
    "country": "UK",
}


def signup(client, email, user_type="buyer", **extra):
    payload = dict(SIGNUP_FIELDS, email=email, userType=user_type)
    if user_type == "seller":
        payload.setdefault("paymentMethodId", "pm_card_visa")
    payload.update(extra)
    return client.post("/api/signup", json=payload)


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
