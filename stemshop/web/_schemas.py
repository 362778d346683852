"""
HTTP codecs — camelCase JSON ⇄ domain.

Request models implement to_domain(); response models from_domain().
Unknown keys are ignored, as storefront clients send extra fields.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from stemshop._types import ZERO, money
from stemshop.domain import (
    CartLine,
    CheckoutReceipt,
    CheckoutRequest,
    ClientPricing,
    GuestInfo,
    LineManifest,
    PriceBreakdown,
    Quote,
    SessionUser,
    ShippingAddress,
    ShippingMethod,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingAddressIn(ApiModel):
    full_name: str = Field(min_length=1)
    address_line1: str = Field(min_length=1)
    address_line2: str | None = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)
    phone: str = Field(min_length=1)

    def to_domain(self) -> ShippingAddress:
        return ShippingAddress(
            full_name=self.full_name,
            address_line1=self.address_line1,
            address_line2=self.address_line2 or None,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country,
            phone=self.phone,
        )


class ShippingMethodIn(ApiModel):
    id: str | None = None
    name: str | None = None
    description: str | None = None
    price: Decimal = ZERO

    @field_validator("price", mode="before")
    @classmethod
    def _lenient_price(cls, value: Any) -> Any:
        """Strings are parsed; anything unparsable is 0."""
        if value is None:
            return ZERO
        if isinstance(value, str):
            try:
                return Decimal(value.strip())
            except InvalidOperation:
                return ZERO
        return value

    def to_domain(self) -> ShippingMethod:
        return ShippingMethod(
            id=self.id,
            name=self.name,
            description=self.description,
            price=money(max(ZERO, self.price)) if self.price.is_finite() else ZERO,
        )


class CartItemIn(ApiModel):
    product_id: str = Field(min_length=1)
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(gt=0)
    is_book: bool | None = None
    selected_language: str | None = None

    def to_domain(self) -> CartLine:
        return CartLine(
            item_id=self.product_id,
            name=self.name,
            price=money(self.price),
            quantity=self.quantity,
            is_book=self.is_book,
            selected_language=self.selected_language or None,
        )


class GuestInformationIn(ApiModel):
    email: EmailStr
    create_account: bool = False
    password: str | None = Field(default=None, repr=False)
    marketing_opt_in: bool = False


class CheckoutOrderIn(ApiModel):
    shipping_address: ShippingAddressIn
    billing_address: ShippingAddressIn | None = None
    shipping_method: ShippingMethodIn | None = None
    items: list[CartItemIn] = Field(min_length=1)
    coupon_code: str | None = None

    subtotal: Decimal | None = None
    tax: Decimal | None = None
    shipping_cost: Decimal | None = None
    total: Decimal | None = None
    discount_amount: Decimal | None = Field(default=None, ge=0)

    guest_information: GuestInformationIn | None = None
    is_guest_checkout: bool = False
    payment_intent_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("stripePaymentIntentId", "paymentIntentId", "payment_intent_id"),
    )
    notes: str | None = None

    def to_domain(self, session_user: SessionUser | None = None) -> CheckoutRequest:
        guest = None
        if self.guest_information is not None:
            guest = GuestInfo(
                email=str(self.guest_information.email).lower(),
                is_guest_checkout=self.is_guest_checkout,
                create_account=self.guest_information.create_account,
                marketing_opt_in=self.guest_information.marketing_opt_in,
            )

        return CheckoutRequest(
            items=tuple(item.to_domain() for item in self.items),
            shipping_address=self.shipping_address.to_domain(),
            shipping_method=self.shipping_method.to_domain() if self.shipping_method else None,
            billing_address=self.billing_address.to_domain() if self.billing_address else None,
            coupon_code=self.coupon_code or None,
            client_pricing=ClientPricing(
                subtotal=_optional_money(self.subtotal),
                tax=_optional_money(self.tax),
                shipping_cost=_optional_money(self.shipping_cost),
                discount_amount=_optional_money(self.discount_amount),
                total=_optional_money(self.total),
            ),
            guest=guest,
            session_user=session_user,
            payment_intent_id=self.payment_intent_id or None,
            notes=self.notes,
        )


def _optional_money(value: Decimal | None) -> Decimal | None:
    return money(value) if value is not None else None


# ═══════════════════════════════════════════════════════════════════════════════
# Response
# ═══════════════════════════════════════════════════════════════════════════════


class AcceptedLineOut(ApiModel):
    id: str
    kind: str
    name: str
    quantity: int
    price: Decimal


class RejectedLineOut(ApiModel):
    id: str
    name: str
    reason: str


class LinesOut(ApiModel):
    accepted: list[AcceptedLineOut]
    rejected: list[RejectedLineOut]

    @classmethod
    def from_domain(cls, manifest: LineManifest) -> LinesOut:
        return cls(
            accepted=[
                AcceptedLineOut(
                    id=line.item_id,
                    kind=str(line.kind),
                    name=line.name,
                    quantity=line.quantity,
                    price=line.unit_price,
                )
                for line in manifest.accepted
            ],
            rejected=[
                RejectedLineOut(id=line.item_id, name=line.name, reason=str(line.reason))
                for line in manifest.rejected
            ],
        )


class BreakdownOut(ApiModel):
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal

    @classmethod
    def from_domain(cls, breakdown: PriceBreakdown) -> BreakdownOut:
        return cls(
            subtotal=breakdown.subtotal,
            tax=breakdown.tax,
            shipping_cost=breakdown.shipping_cost,
            discount_amount=breakdown.discount_amount,
            total=breakdown.total,
        )


class CheckoutOrderOut(ApiModel):
    success: bool = True
    order_id: str
    order_number: str
    status: str
    replayed: bool
    message: str
    pricing: BreakdownOut
    coupon_code: str | None
    lines: LinesOut

    @classmethod
    def from_domain(cls, receipt: CheckoutReceipt) -> CheckoutOrderOut:
        order = receipt.order
        return cls(
            order_id=order.order_id,
            order_number=order.order_number,
            status=str(order.status),
            replayed=order.replayed,
            message="Order already created" if order.replayed else "Order created successfully",
            pricing=BreakdownOut.from_domain(order.breakdown),
            coupon_code=order.coupon_code,
            lines=LinesOut.from_domain(receipt.manifest),
        )


class CheckoutQuoteOut(ApiModel):
    success: bool = True
    pricing: BreakdownOut
    coupon_code: str | None
    tax_rate_percentage: Decimal
    is_free_shipping_active: bool
    free_shipping_threshold: Decimal | None
    lines: LinesOut

    @classmethod
    def from_domain(cls, quote: Quote) -> CheckoutQuoteOut:
        return cls(
            pricing=BreakdownOut.from_domain(quote.breakdown),
            coupon_code=quote.coupon.code if quote.coupon else None,
            tax_rate_percentage=quote.settings.tax_rate_percent,
            is_free_shipping_active=quote.settings.free_shipping_active,
            free_shipping_threshold=quote.settings.free_shipping_threshold,
            lines=LinesOut.from_domain(quote.manifest),
        )


class ErrorOut(ApiModel):
    success: bool = False
    message: str
    error: str | dict[str, str] | None = None


__all__ = (
    "ApiModel",
    "ShippingAddressIn",
    "ShippingMethodIn",
    "CartItemIn",
    "GuestInformationIn",
    "CheckoutOrderIn",
    "AcceptedLineOut",
    "RejectedLineOut",
    "LinesOut",
    "BreakdownOut",
    "CheckoutOrderOut",
    "CheckoutQuoteOut",
    "ErrorOut",
)
