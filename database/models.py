"""
SQLAlchemy ORM models for the marketplace store.

JSON columns use JSONB on PostgreSQL and plain JSON elsewhere so the same
models run against the aiosqlite test database.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    SUPPORT = "SUPPORT"


class DeliveryType(str, enum.Enum):
    INSTANT = "INSTANT"
    MANUAL = "MANUAL"


class StockType(str, enum.Enum):
    LIMITED = "LIMITED"
    UNLIMITED = "UNLIMITED"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"
    REFUNDED = "REFUNDED"


# Orders in these states still depend on their listing.
OPEN_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.DELIVERED)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(20), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.USER)
    verified = Column(Boolean, nullable=False, default=False)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    listings = relationship("Listing", back_populates="seller")


class Game(Base):
    __tablename__ = "games"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    image_url = Column(Text, nullable=True)
    platform_types = Column(JsonDocument, nullable=False, default=list)
    order_index = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    categories = relationship("Category", back_populates="game")
    listings = relationship("Listing", back_populates="game")


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("game_id", "slug", name="uq_categories_game_slug"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id = Column(Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=False, default=10)
    fields_config = Column(JsonDocument, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    game = relationship("Game", back_populates="categories")
    listings = relationship("Listing", back_populates="category")


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("ix_listings_browse", "game_id", "category_id", "active", "hidden"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(Uuid, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(Uuid, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=False)
    delivery_type = Column(
        Enum(DeliveryType, name="delivery_type"), nullable=False, default=DeliveryType.MANUAL
    )
    stock_type = Column(
        Enum(StockType, name="stock_type"), nullable=False, default=StockType.LIMITED
    )
    quantity = Column(Integer, nullable=True)
    images = Column(JsonDocument, nullable=False, default=list)
    custom_fields = Column(JsonDocument, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    hidden = Column(Boolean, nullable=False, default=False)
    boosted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    seller = relationship("User", back_populates="listings")
    game = relationship("Game", back_populates="listings")
    category = relationship("Category", back_populates="listings")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    listing_id = Column(Uuid, ForeignKey("listings.id", ondelete="SET NULL"), nullable=True)
    buyer_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING
    )
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
