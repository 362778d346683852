"""
Domain — checkout order creation.

The request arrives as loosely-typed client JSON and is decoded into
CheckoutRequest at the HTTP edge. From there on:

- Cart lines are untrusted until the catalog resolver turns them into
  PhysicalLine | DigitalLine (or a RejectedLine in the manifest)
- Store settings, coupon and pricing are read-only computations
- Only the order writer touches the database in a write transaction
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from stemshop._types import Money, ZERO


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(StrEnum):
    PROCESSING = "PROCESSING"
    DELIVERED = "DELIVERED"


class PaymentStatus(StrEnum):
    PAID = "PAID"


class CouponType(StrEnum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class LineKind(StrEnum):
    PHYSICAL = "physical"
    DIGITAL = "digital"


class RejectReason(StrEnum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """One client-supplied cart line. is_book is a hint, never trusted."""
    item_id: str
    name: str
    price: Money
    quantity: int
    is_book: bool | None = None
    selected_language: str | None = None


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    full_name: str
    address_line1: str
    city: str
    state: str
    postal_code: str
    country: str
    phone: str
    address_line2: str | None = None


@dataclass(frozen=True, slots=True)
class ShippingMethod:
    id: str | None = None
    name: str | None = None
    description: str | None = None
    price: Money = ZERO


@dataclass(frozen=True, slots=True)
class GuestInfo:
    email: str
    is_guest_checkout: bool
    create_account: bool = False
    marketing_opt_in: bool = False


@dataclass(frozen=True, slots=True)
class ClientPricing:
    """Amounts the client pre-computed. Every field is optional."""
    subtotal: Money | None = None
    tax: Money | None = None
    shipping_cost: Money | None = None
    discount_amount: Money | None = None
    total: Money | None = None


@dataclass(frozen=True, slots=True)
class SessionUser:
    """What the session resolver returns for an authenticated request."""
    id: str
    email: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    items: tuple[CartLine, ...]
    shipping_address: ShippingAddress
    shipping_method: ShippingMethod | None = None
    billing_address: ShippingAddress | None = None
    coupon_code: str | None = None
    client_pricing: ClientPricing = field(default_factory=ClientPricing)
    guest: GuestInfo | None = None
    session_user: SessionUser | None = None
    payment_intent_id: str | None = None
    notes: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Customer:
    """
    Who the order belongs to.

    Guests have no user_id until the order writer persists them.
    """
    email: str
    user_id: str | None = None
    name: str | None = None
    is_guest: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# Resolved cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PhysicalLine:
    product_id: str
    name: str
    unit_price: Money
    quantity: int

    @property
    def kind(self) -> LineKind:
        return LineKind.PHYSICAL

    @property
    def item_id(self) -> str:
        return self.product_id

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class DigitalLine:
    book_id: str
    name: str
    unit_price: Money
    quantity: int
    selected_language: str | None = None

    @property
    def kind(self) -> LineKind:
        return LineKind.DIGITAL

    @property
    def item_id(self) -> str:
        return self.book_id

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity


type ResolvedLine = PhysicalLine | DigitalLine


@dataclass(frozen=True, slots=True)
class RejectedLine:
    item_id: str
    name: str
    reason: RejectReason


@dataclass(frozen=True, slots=True)
class LineManifest:
    """Accepted lines in cart order, plus every line that was dropped."""
    accepted: tuple[ResolvedLine, ...]
    rejected: tuple[RejectedLine, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.accepted

    @property
    def all_digital(self) -> bool:
        return bool(self.accepted) and all(
            isinstance(line, DigitalLine) for line in self.accepted
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PricingSettings:
    tax_rate_percent: Decimal
    apply_tax: bool
    free_shipping_active: bool
    free_shipping_threshold: Money | None

    @property
    def tax_rate(self) -> Decimal:
        return self.tax_rate_percent / 100


@dataclass(frozen=True, slots=True)
class CouponSnapshot:
    """A coupon row plus this user's historical usage count."""
    id: str
    code: str
    type: CouponType
    value: Money
    is_active: bool
    current_uses: int
    user_usage_count: int
    max_discount_amount: Money | None = None
    minimum_order_value: Money | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    max_uses: int | None = None
    max_uses_per_user: int | None = None


@dataclass(frozen=True, slots=True)
class CouponGrant:
    coupon_id: str
    code: str
    discount: Money


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    subtotal: Money
    tax: Money
    shipping_cost: Money
    discount_amount: Money
    total: Money


@dataclass(frozen=True, slots=True)
class Quote:
    """Everything decided before the write transaction."""
    customer: Customer
    manifest: LineManifest
    settings: PricingSettings
    coupon: CouponGrant | None
    breakdown: PriceBreakdown


# ═══════════════════════════════════════════════════════════════════════════════
# Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PlacedOrder:
    """What the order writer committed (or found, on a replay)."""
    order_id: str
    order_number: str
    user_id: str
    status: OrderStatus
    breakdown: PriceBreakdown
    coupon_code: str | None
    created_at: datetime
    replayed: bool = False


@dataclass(frozen=True, slots=True)
class CheckoutReceipt:
    order: PlacedOrder
    manifest: LineManifest
    failed_effects: tuple[str, ...] = ()

    @property
    def order_id(self) -> str:
        return self.order.order_id

    @property
    def order_number(self) -> str:
        return self.order.order_number


__all__ = (
    "OrderStatus",
    "PaymentStatus",
    "CouponType",
    "LineKind",
    "RejectReason",
    "CartLine",
    "ShippingAddress",
    "ShippingMethod",
    "GuestInfo",
    "ClientPricing",
    "SessionUser",
    "CheckoutRequest",
    "Customer",
    "PhysicalLine",
    "DigitalLine",
    "ResolvedLine",
    "RejectedLine",
    "LineManifest",
    "PricingSettings",
    "CouponSnapshot",
    "CouponGrant",
    "PriceBreakdown",
    "Quote",
    "PlacedOrder",
    "CheckoutReceipt",
)
