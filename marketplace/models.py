from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String, Text

from marketplace.database import Base


class PaymentIntentRow(Base):
    __tablename__ = "payment_intents"

    id = Column(String, primary_key=True)          # pi_... from the processor
    client_secret = Column(String, nullable=False)
    amount_minor_units = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String, nullable=False)        # requires_payment_method | succeeded | failed
    created_at = Column(DateTime(timezone=True), nullable=False)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)  # stored lowercased
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    address = Column(String, nullable=False)
    city = Column(String, nullable=False)
    country = Column(String, nullable=False)
    website = Column(String)
    bio = Column(Text)
    user_type = Column(String, nullable=False)     # buyer | seller
    is_verified = Column(Boolean, default=False, nullable=False)
    last_login = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ListingRow(Base):
    __tablename__ = "listings"

    id = Column(String, primary_key=True)
    seller_id = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    commission_rate = Column(Float, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    contact_info = Column(JSON, nullable=False, default=dict)
    status = Column(String, nullable=False)        # active | inactive | pending
    is_premium = Column(Boolean, default=False, nullable=False)
    premium_expiry = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
