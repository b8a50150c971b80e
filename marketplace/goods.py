import uuid
from collections import Counter
from datetime import timedelta

from fastapi import APIRouter, Depends, Request

from marketplace.auth import current_user
from marketplace.commission import rate_for
from marketplace.domain import Listing, ListingStatus, User, UserType, utcnow
from marketplace.errors import NotFound, Unauthorized
from marketplace.logging_config import get_logger
from marketplace.schemas import GoodCreate, GoodUpdate, PremiumToggle, contact_dict

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

PREMIUM_PERIOD = timedelta(days=30)


def current_seller(user: User = Depends(current_user)) -> User:
    if user.user_type is not UserType.SELLER:
        raise Unauthorized("Only sellers can manage listings")
    return user


def owned_listing(request: Request, listing_id: str, seller: User) -> Listing:
    listing = request.app.state.storage.listings.get(listing_id)
    if listing is None or listing.seller_id != seller.id:
        raise NotFound("Good not found")
    return listing


@router.post("/goods", status_code=201)
def create_good(body: GoodCreate, request: Request, seller: User = Depends(current_seller)):
    rate = rate_for(body.category, request.app.state.settings.commission_rates)
    listing = Listing(
        id=uuid.uuid4().hex,
        seller_id=seller.id,
        title=body.title,
        description=body.description,
        price=body.price,
        category=body.category,
        commission_rate=rate,
        images=body.images,
        contact_info=contact_dict(body.contact_info),
    )
    request.app.state.storage.listings.add(listing)
    logger.info("listing_created", listing_id=listing.id, seller_id=seller.id, category=listing.category)
    return listing.to_response()


@router.get("/goods")
def list_goods(request: Request, seller: User = Depends(current_seller)):
    listings = request.app.state.storage.listings.list_for_seller(seller.id)
    return [listing.to_response() for listing in listings]


@router.put("/goods/{listing_id}")
def update_good(listing_id: str, body: GoodUpdate, request: Request,
                seller: User = Depends(current_seller)):
    listing = owned_listing(request, listing_id, seller)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    if "category" in changes:
        listing.commission_rate = rate_for(changes["category"], request.app.state.settings.commission_rates)
    if "contact_info" in changes:
        changes["contact_info"] = contact_dict(body.contact_info)
    if "status" in changes:
        changes["status"] = ListingStatus(changes["status"])
    for attr, value in changes.items():
        setattr(listing, attr, value)
    listing.updated_at = utcnow()

    request.app.state.storage.listings.update(listing)
    return listing.to_response()


@router.delete("/goods/{listing_id}")
def delete_good(listing_id: str, request: Request, seller: User = Depends(current_seller)):
    owned_listing(request, listing_id, seller)
    request.app.state.storage.listings.delete(listing_id)
    return {"message": "Good deleted successfully"}


@router.get("/analytics")
def seller_analytics(request: Request, seller: User = Depends(current_seller)):
    listings = request.app.state.storage.listings.list_for_seller(seller.id)
    return {
        "totalSales": sum(listing.price for listing in listings),
        "totalCommission": sum(listing.price * listing.commission_rate for listing in listings),
        "activeListings": sum(1 for listing in listings if listing.status is ListingStatus.ACTIVE),
        "categoryBreakdown": dict(Counter(listing.category for listing in listings)),
    }


@router.put("/goods/{listing_id}/premium")
def toggle_premium(listing_id: str, body: PremiumToggle, request: Request,
                   seller: User = Depends(current_seller)):
    listing = owned_listing(request, listing_id, seller)
    listing.is_premium = body.is_premium
    listing.premium_expiry = utcnow() + PREMIUM_PERIOD if body.is_premium else None
    listing.updated_at = utcnow()

    request.app.state.storage.listings.update(listing)
    logger.info("listing_premium_toggled", listing_id=listing.id, is_premium=listing.is_premium)
    return listing.to_response()


@router.get("/premium-stats")
def premium_stats(request: Request, seller: User = Depends(current_seller)):
    listings = request.app.state.storage.listings.list_for_seller(seller.id)
    now = utcnow()
    premium = [listing for listing in listings if listing.is_premium]
    return {
        "totalListings": len(listings),
        "premiumListings": len(premium),
        "activePremiumListings": sum(
            1 for listing in premium
            if listing.premium_expiry is not None and listing.premium_expiry > now
        ),
    }
