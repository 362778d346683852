"""
Database layer — SQLAlchemy models.

Only the columns the checkout pipeline reads or writes are mapped.
"""

from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from stemshop._types import utcnow


def new_id() -> str:
    return uuid.uuid4().hex


Amount = Numeric(10, 2)


# ═══════════════════════════════════════════════════════════════════════════════
# Base
# ═══════════════════════════════════════════════════════════════════════════════

class Base(DeclarativeBase):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Customers
# ═══════════════════════════════════════════════════════════════════════════════

class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_guest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class AddressRow(Base):
    """Deduplicated per user by (full_name, address_line1, city, postal_code)."""
    __tablename__ = "addresses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="Shipping Address")
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════

class ProductRow(Base):
    """Physical goods. Stock moves into reserved_quantity at order time."""
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class BookRow(Base):
    """Digital goods."""
    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    price: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════

class CouponRow(Base):
    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # PERCENTAGE | FIXED_AMOUNT
    value: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    minimum_order_value: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_uses_per_user: Mapped[int | None] = mapped_column(Integer, nullable=True)


class CouponUsageRow(Base):
    __tablename__ = "coupon_usages"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    coupon_id: Mapped[str] = mapped_column(ForeignKey("coupons.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    used_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

class OrderRow(Base):
    """
    Orders table.

    Pricing columns are frozen at commit. payment_intent_id is the
    idempotency key: one order per payment intent.
    """
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    subtotal: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    tax: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    total: Mapped[Decimal] = mapped_column(Amount, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="card")
    payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    shipping_address_id: Mapped[str] = mapped_column(ForeignKey("addresses.id"), nullable=False)
    coupon_id: Mapped[str | None] = mapped_column(ForeignKey("coupons.id"), nullable=True)
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    items: Mapped[list["OrderItemRow"]] = relationship(
        back_populates="order", order_by="OrderItemRow.position"
    )


class OrderItemRow(Base):
    """Exactly one of product_id / book_id is set."""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint(
            "(product_id IS NULL) <> (book_id IS NULL)",
            name="ck_order_items_one_target",
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_id: Mapped[str | None] = mapped_column(ForeignKey("products.id"), nullable=True)
    book_id: Mapped[str | None] = mapped_column(ForeignKey("books.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_digital: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_downloads: Mapped[int | None] = mapped_column(Integer, nullable=True)
    download_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    order: Mapped[OrderRow] = relationship(back_populates="items")


# ═══════════════════════════════════════════════════════════════════════════════
# Store settings (key/value)
# ═══════════════════════════════════════════════════════════════════════════════

class StoreSettingRow(Base):
    __tablename__ = "store_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


__all__ = (
    "Base",
    "new_id",
    "UserRow",
    "AddressRow",
    "ProductRow",
    "BookRow",
    "CouponRow",
    "CouponUsageRow",
    "OrderRow",
    "OrderItemRow",
    "StoreSettingRow",
)
