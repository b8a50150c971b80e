import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request

from marketplace.auth import current_user, hash_password, issue_token, verify_password
from marketplace.domain import User, UserType, utcnow
from marketplace.errors import Conflict, InvalidRequest, NotFound, PaymentFailed, Unauthorized
from marketplace.logging_config import get_logger
from marketplace.schemas import ChangePasswordRequest, LoginRequest, ProfileUpdate, SignupRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def collect_registration_fee(request: Request, email: str, payment_method_id: str):
    settings = request.app.state.settings
    ledger = request.app.state.ledger
    intent = ledger.create(settings.seller_registration_fee, "usd", payment_method=payment_method_id)
    result = ledger.confirm(intent.id)
    if not result.success:
        logger.info("registration_fee_declined", email=email, intent_id=intent.id)
        raise PaymentFailed("Payment failed")
    return intent


@router.post("/signup", status_code=201)
def signup(body: SignupRequest, request: Request):
    users = request.app.state.storage.users
    if users.get_by_email(body.email) is not None:
        raise Conflict("Email already registered")
    is_seller = body.user_type is UserType.SELLER
    if is_seller and not body.payment_method_id:
        raise InvalidRequest("Payment method is required for seller registration")

    user = User(
        id=uuid.uuid4().hex,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email.lower(),
        password_hash=hash_password(body.password),
        phone=body.phone,
        address=body.address,
        city=body.city,
        country=body.country,
        website=body.website,
        bio=body.bio,
        user_type=body.user_type,
    )
    # Reserve the email before the seller fee is charged.
    users.add(user)

    if is_seller:
        try:
            collect_registration_fee(request, user.email, body.payment_method_id)
        except Exception:
            users.delete(user.id)
            raise
        user.is_verified = True
        user.updated_at = utcnow()
        users.update(user)
    logger.info("user_registered", user_id=user.id, user_type=user.user_type.value)

    return {
        "message": "User registered successfully",
        "user": user.public_profile(),
        "token": issue_token(user.id, request.app.state.settings),
    }


@router.post("/login")
def login(body: LoginRequest, request: Request):
    users = request.app.state.storage.users
    user = users.get_by_email(body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        raise Unauthorized("Invalid credentials")

    user.last_login = utcnow()
    users.update(user)

    return {
        "message": "Login successful",
        "user": user.public_profile(),
        "token": issue_token(user.id, request.app.state.settings),
    }


@router.get("/profile")
def get_profile(user: User = Depends(current_user)):
    return user.public_profile()


@router.put("/profile")
def update_profile(body: ProfileUpdate, request: Request, user: User = Depends(current_user)):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise InvalidRequest("Invalid updates")
    for attr, value in changes.items():
        setattr(user, attr, value)
    user.updated_at = utcnow()
    request.app.state.storage.users.update(user)
    return user.public_profile()


@router.put("/change-password")
def change_password(body: ChangePasswordRequest, request: Request, user: User = Depends(current_user)):
    if not verify_password(body.current_password, user.password_hash):
        raise Unauthorized("Current password is incorrect")
    user.password_hash = hash_password(body.new_password)
    user.updated_at = utcnow()
    request.app.state.storage.users.update(user)
    return {"message": "Password updated successfully"}


@router.delete("/profile")
def delete_account(request: Request, user: User = Depends(current_user)):
    storage = request.app.state.storage
    for listing in storage.listings.list_for_seller(user.id):
        storage.listings.delete(listing.id)
    storage.users.delete(user.id)
    logger.info("user_deleted", user_id=user.id)
    return {"message": "Account deleted successfully"}


@router.get("/user")
def get_user_by_email(request: Request, email: Optional[str] = None):
    if not email:
        raise InvalidRequest("Email is required")
    user = request.app.state.storage.users.get_by_email(email)
    if user is None:
        raise NotFound("User not found")
    return {"user": user.public_profile()}
