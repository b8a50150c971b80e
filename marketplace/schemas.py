from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketplace.domain import ListingStatus, UserType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Payment and commission bodies accept anything; the ledger and the
# calculator own the validation so error codes stay specific.

class PaymentIntentRequest(BaseModel):
    amount: Any = None
    currency: Any = None


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: Any = None


class CommissionRequest(BaseModel):
    price: Any = None
    category: Any = None


class SignupRequest(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    country: str = Field(min_length=1)
    website: Optional[str] = None
    bio: Optional[str] = None
    user_type: UserType
    payment_method_id: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    bio: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(min_length=1)


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None


class GoodCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(ge=0)
    category: str
    images: List[str] = Field(default_factory=list)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)


class GoodUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    images: Optional[List[str]] = None
    contact_info: Optional[ContactInfo] = None
    status: Optional[ListingStatus] = None


class PremiumToggle(CamelModel):
    is_premium: bool


def contact_dict(contact: ContactInfo) -> Dict[str, Optional[str]]:
    return contact.model_dump()
