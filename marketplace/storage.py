"""
Storage strategies for intents, users and listings.

Handlers and the ledger only see the abstract stores; ``build_storage`` picks
the in-memory or SQL adapters from settings.
"""
import copy
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timezone
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from marketplace.database import Base, build_engine, build_session_factory
from marketplace.domain import (
    IntentStatus,
    Listing,
    ListingStatus,
    PaymentIntent,
    User,
    UserType,
)
from marketplace.errors import Conflict
from marketplace.models import ListingRow, PaymentIntentRow, UserRow


class IntentStore(ABC):
    @abstractmethod
    def add(self, intent: PaymentIntent) -> None: ...

    @abstractmethod
    def get(self, intent_id: str) -> Optional[PaymentIntent]: ...

    @abstractmethod
    def transition(self, intent_id: str, expected: IntentStatus, new: IntentStatus) -> bool:
        """Set ``new`` only if the stored status is still ``expected``."""


class UserStore(ABC):
    @abstractmethod
    def add(self, user: User) -> None: ...

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def update(self, user: User) -> None: ...

    @abstractmethod
    def delete(self, user_id: str) -> bool: ...


class ListingStore(ABC):
    @abstractmethod
    def add(self, listing: Listing) -> None: ...

    @abstractmethod
    def get(self, listing_id: str) -> Optional[Listing]: ...

    @abstractmethod
    def list_for_seller(self, seller_id: str) -> List[Listing]: ...

    @abstractmethod
    def update(self, listing: Listing) -> None: ...

    @abstractmethod
    def delete(self, listing_id: str) -> bool: ...


@dataclass
class Storage:
    intents: IntentStore
    users: UserStore
    listings: ListingStore
    engine: object = None

    def close(self):
        if self.engine is not None:
            self.engine.dispose()


# --- in-memory --------------------------------------------------------------


class MemoryIntentStore(IntentStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._intents: Dict[str, PaymentIntent] = {}

    def add(self, intent):
        with self._lock:
            self._intents[intent.id] = copy.copy(intent)

    def get(self, intent_id):
        with self._lock:
            intent = self._intents.get(intent_id)
            return copy.copy(intent) if intent else None

    def transition(self, intent_id, expected, new):
        with self._lock:
            intent = self._intents.get(intent_id)
            if intent is None or intent.status is not expected:
                return False
            intent.status = new
            return True


class MemoryUserStore(UserStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[str, User] = {}
        self._by_email: Dict[str, str] = {}

    def add(self, user):
        key = user.email.lower()
        with self._lock:
            if key in self._by_email:
                raise Conflict("Email already registered")
            self._users[user.id] = copy.deepcopy(user)
            self._by_email[key] = user.id

    def get(self, user_id):
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_by_email(self, email):
        with self._lock:
            user_id = self._by_email.get(email.lower())
            return copy.deepcopy(self._users[user_id]) if user_id else None

    def update(self, user):
        with self._lock:
            self._users[user.id] = copy.deepcopy(user)

    def delete(self, user_id):
        with self._lock:
            user = self._users.pop(user_id, None)
            if user is None:
                return False
            del self._by_email[user.email.lower()]
            return True


class MemoryListingStore(ListingStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._listings: Dict[str, Listing] = {}

    def add(self, listing):
        with self._lock:
            self._listings[listing.id] = copy.deepcopy(listing)

    def get(self, listing_id):
        with self._lock:
            listing = self._listings.get(listing_id)
            return copy.deepcopy(listing) if listing else None

    def list_for_seller(self, seller_id):
        with self._lock:
            return [
                copy.deepcopy(listing)
                for listing in self._listings.values()
                if listing.seller_id == seller_id
            ]

    def update(self, listing):
        with self._lock:
            self._listings[listing.id] = copy.deepcopy(listing)

    def delete(self, listing_id):
        with self._lock:
            return self._listings.pop(listing_id, None) is not None


# --- SQL --------------------------------------------------------------------


def _aware(value):
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _intent_from_row(row: PaymentIntentRow) -> PaymentIntent:
    return PaymentIntent(
        id=row.id,
        client_secret=row.client_secret,
        amount_minor_units=row.amount_minor_units,
        currency=row.currency,
        status=IntentStatus(row.status),
        created_at=_aware(row.created_at),
    )


def _user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        password_hash=row.password_hash,
        phone=row.phone,
        address=row.address,
        city=row.city,
        country=row.country,
        user_type=UserType(row.user_type),
        website=row.website,
        bio=row.bio,
        is_verified=row.is_verified,
        last_login=_aware(row.last_login),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _listing_from_row(row: ListingRow) -> Listing:
    return Listing(
        id=row.id,
        seller_id=row.seller_id,
        title=row.title,
        description=row.description,
        price=row.price,
        category=row.category,
        commission_rate=row.commission_rate,
        images=list(row.images or []),
        contact_info=dict(row.contact_info or {}),
        status=ListingStatus(row.status),
        is_premium=row.is_premium,
        premium_expiry=_aware(row.premium_expiry),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


class SqlIntentStore(IntentStore):
    def __init__(self, session_factory):
        self.SessionLocal = session_factory

    def add(self, intent):
        with self.SessionLocal() as db:
            db.add(PaymentIntentRow(
                id=intent.id,
                client_secret=intent.client_secret,
                amount_minor_units=intent.amount_minor_units,
                currency=intent.currency,
                status=intent.status.value,
                created_at=intent.created_at,
            ))
            db.commit()

    def get(self, intent_id):
        with self.SessionLocal() as db:
            row = db.get(PaymentIntentRow, intent_id)
            return _intent_from_row(row) if row else None

    def transition(self, intent_id, expected, new):
        with self.SessionLocal() as db:
            result = db.execute(
                update(PaymentIntentRow)
                .where(PaymentIntentRow.id == intent_id)
                .where(PaymentIntentRow.status == expected.value)
                .values(status=new.value)
            )
            db.commit()
            return result.rowcount == 1


class SqlUserStore(UserStore):
    def __init__(self, session_factory):
        self.SessionLocal = session_factory

    def add(self, user):
        with self.SessionLocal() as db:
            db.add(UserRow(
                id=user.id,
                email=user.email.lower(),
                first_name=user.first_name,
                last_name=user.last_name,
                password_hash=user.password_hash,
                phone=user.phone,
                address=user.address,
                city=user.city,
                country=user.country,
                website=user.website,
                bio=user.bio,
                user_type=user.user_type.value,
                is_verified=user.is_verified,
                last_login=user.last_login,
                created_at=user.created_at,
                updated_at=user.updated_at,
            ))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise Conflict("Email already registered")

    def get(self, user_id):
        with self.SessionLocal() as db:
            row = db.get(UserRow, user_id)
            return _user_from_row(row) if row else None

    def get_by_email(self, email):
        with self.SessionLocal() as db:
            row = db.query(UserRow).filter_by(email=email.lower()).first()
            return _user_from_row(row) if row else None

    def update(self, user):
        with self.SessionLocal() as db:
            row = db.get(UserRow, user.id)
            if row is None:
                return
            for attr in ("first_name", "last_name", "password_hash", "phone", "address",
                         "city", "country", "website", "bio", "is_verified",
                         "last_login", "updated_at"):
                setattr(row, attr, getattr(user, attr))
            db.commit()

    def delete(self, user_id):
        with self.SessionLocal() as db:
            row = db.get(UserRow, user_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True


class SqlListingStore(ListingStore):
    def __init__(self, session_factory):
        self.SessionLocal = session_factory

    def add(self, listing):
        with self.SessionLocal() as db:
            db.add(ListingRow(
                id=listing.id,
                seller_id=listing.seller_id,
                title=listing.title,
                description=listing.description,
                price=listing.price,
                category=listing.category,
                commission_rate=listing.commission_rate,
                images=list(listing.images),
                contact_info=dict(listing.contact_info),
                status=listing.status.value,
                is_premium=listing.is_premium,
                premium_expiry=listing.premium_expiry,
                created_at=listing.created_at,
                updated_at=listing.updated_at,
            ))
            db.commit()

    def get(self, listing_id):
        with self.SessionLocal() as db:
            row = db.get(ListingRow, listing_id)
            return _listing_from_row(row) if row else None

    def list_for_seller(self, seller_id):
        with self.SessionLocal() as db:
            rows = db.query(ListingRow).filter_by(seller_id=seller_id).all()
            return [_listing_from_row(row) for row in rows]

    def update(self, listing):
        with self.SessionLocal() as db:
            row = db.get(ListingRow, listing.id)
            if row is None:
                return
            row.title = listing.title
            row.description = listing.description
            row.price = listing.price
            row.category = listing.category
            row.commission_rate = listing.commission_rate
            row.images = list(listing.images)
            row.contact_info = dict(listing.contact_info)
            row.status = listing.status.value
            row.is_premium = listing.is_premium
            row.premium_expiry = listing.premium_expiry
            row.updated_at = listing.updated_at
            db.commit()

    def delete(self, listing_id):
        with self.SessionLocal() as db:
            row = db.get(ListingRow, listing_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True


def build_storage(settings) -> Storage:
    if settings.storage_backend == "sql":
        engine = build_engine(settings.database_url)
        Base.metadata.create_all(bind=engine)
        SessionLocal = build_session_factory(engine)
        return Storage(
            intents=SqlIntentStore(SessionLocal),
            users=SqlUserStore(SessionLocal),
            listings=SqlListingStore(SessionLocal),
            engine=engine,
        )
    return Storage(
        intents=MemoryIntentStore(),
        users=MemoryUserStore(),
        listings=MemoryListingStore(),
    )
