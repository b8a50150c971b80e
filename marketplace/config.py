import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from marketplace.errors import InvalidAmount
from marketplace.ledger import to_minor_units

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

STORAGE_BACKENDS = ("memory", "sql")
PAYMENT_PROCESSORS = ("mock", "stripe")
MOCK_OUTCOMES = ("succeeded", "failed")

DEFAULT_COMMISSION_RATES = {
    "general": 0.01,
    "premium": 0.01,
    "services": 0.01,
    "digital": 0.01,
    "high-volume": 0.01,
}


@dataclass
class Settings:
    jwt_secret: str
    storage_backend: str = "memory"
    database_url: Optional[str] = None
    payment_processor: str = "mock"
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    mock_payment_outcome: str = "succeeded"
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 1440
    commission_rates: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_COMMISSION_RATES)
    )
    seller_registration_fee: str = "20.00"
    cors_origin: str = "http://localhost:3002"
    log_level: str = "INFO"
    service_name: str = "marketplace"
    environment: str = "development"

    def __post_init__(self):
        if not self.jwt_secret:
            raise RuntimeError("JWT_SECRET is not set. Check your .env file.")
        if self.storage_backend not in STORAGE_BACKENDS:
            raise RuntimeError(f"Unknown STORAGE_BACKEND: {self.storage_backend}")
        if self.storage_backend == "sql" and not self.database_url:
            raise RuntimeError("DATABASE_URL is not set. Check your .env file.")
        if self.payment_processor not in PAYMENT_PROCESSORS:
            raise RuntimeError(f"Unknown PAYMENT_PROCESSOR: {self.payment_processor}")
        if self.payment_processor == "stripe" and not self.stripe_secret_key:
            raise RuntimeError("STRIPE_SECRET_KEY is not set. Check your .env file.")
        if self.mock_payment_outcome not in MOCK_OUTCOMES:
            raise RuntimeError(
                f"Unknown MOCK_PAYMENT_OUTCOME: {self.mock_payment_outcome}"
            )
        for category, rate in self.commission_rates.items():
            if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not 0 <= rate <= 1:
                raise RuntimeError(f"Commission rate for {category!r} must be in [0, 1]")
        try:
            to_minor_units(self.seller_registration_fee)
        except InvalidAmount:
            raise RuntimeError(
                f"SELLER_REGISTRATION_FEE is not a valid amount: {self.seller_registration_fee!r}"
            )


def _commission_rates_from_env() -> Dict[str, float]:
    raw = os.getenv("COMMISSION_RATES")
    if not raw:
        return dict(DEFAULT_COMMISSION_RATES)
    try:
        rates = json.loads(raw)
    except ValueError:
        raise RuntimeError("COMMISSION_RATES must be a JSON object")
    if not isinstance(rates, dict):
        raise RuntimeError("COMMISSION_RATES must be a JSON object")
    return rates


def load_settings() -> Settings:
    """Build settings from the process environment."""
    return Settings(
        jwt_secret=os.getenv("JWT_SECRET", ""),
        storage_backend=os.getenv("STORAGE_BACKEND", "memory").lower(),
        database_url=os.getenv("DATABASE_URL"),
        payment_processor=os.getenv("PAYMENT_PROCESSOR", "mock").lower(),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
        mock_payment_outcome=os.getenv("MOCK_PAYMENT_OUTCOME", "succeeded").lower(),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expiry_minutes=int(os.getenv("JWT_EXPIRY_MINUTES", "1440")),
        commission_rates=_commission_rates_from_env(),
        seller_registration_fee=os.getenv("SELLER_REGISTRATION_FEE", "20.00"),
        cors_origin=os.getenv("CORS_ORIGIN", "http://localhost:3002"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        service_name=os.getenv("SERVICE_NAME", "marketplace"),
        environment=os.getenv("ENVIRONMENT", "development"),
    )
