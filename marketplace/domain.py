from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

SUPPORTED_CURRENCIES = ("usd", "eur", "gbp")


class IntentStatus(str, Enum):
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not IntentStatus.REQUIRES_PAYMENT_METHOD


class UserType(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


class ListingStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PaymentIntent:
    id: str
    client_secret: str
    amount_minor_units: int
    currency: str
    status: IntentStatus = IntentStatus.REQUIRES_PAYMENT_METHOD
    created_at: datetime = field(default_factory=utcnow)

    def to_response(self) -> dict:
        return {
            "clientSecret": self.client_secret,
            "id": self.id,
            "amount": self.amount_minor_units,
            "currency": self.currency,
            "status": self.status.value,
            "created": int(self.created_at.timestamp() * 1000),
        }


@dataclass
class ConfirmationResult:
    success: bool
    status: IntentStatus
    id: str

    def to_response(self) -> dict:
        return {"success": self.success, "status": self.status.value, "id": self.id}


@dataclass
class User:
    id: str
    first_name: str
    last_name: str
    email: str
    password_hash: str
    phone: str
    address: str
    city: str
    country: str
    user_type: UserType
    website: Optional[str] = None
    bio: Optional[str] = None
    is_verified: bool = False
    last_login: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def public_profile(self) -> dict:
        """Profile as returned to clients; never includes the password hash."""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "website": self.website,
            "bio": self.bio,
            "userType": self.user_type.value,
            "isVerified": self.is_verified,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass
class Listing:
    id: str
    seller_id: str
    title: str
    description: str
    price: float
    category: str
    commission_rate: float
    images: List[str] = field(default_factory=list)
    contact_info: Dict[str, Optional[str]] = field(default_factory=dict)
    status: ListingStatus = ListingStatus.PENDING
    is_premium: bool = False
    premium_expiry: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_response(self) -> dict:
        return {
            "id": self.id,
            "sellerId": self.seller_id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "commissionRate": self.commission_rate,
            "images": list(self.images),
            "contactInfo": dict(self.contact_info),
            "status": self.status.value,
            "isPremium": self.is_premium,
            "premiumExpiry": self.premium_expiry.isoformat() if self.premium_expiry else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
