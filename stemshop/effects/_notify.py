"""
Notification dispatcher — order confirmation email.

Template rendering and delivery belong to the email sender. This module
only decides who gets what data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from stemshop.domain import CheckoutRequest, PlacedOrder, Quote

logger = structlog.get_logger()

CONFIRMATION_TEMPLATE = "order-confirmation"


@dataclass(frozen=True, slots=True)
class EmailMessage:
    to: str
    subject: str
    template: str
    data: dict[str, Any] = field(default_factory=dict)


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None:
        ...


class LoggingEmailSender:
    """Stand-in used when no mail transport is wired."""

    async def send(self, message: EmailMessage) -> None:
        logger.info(
            "email_queued",
            to=message.to,
            subject=message.subject,
            template=message.template,
        )


def build_confirmation(order: PlacedOrder, request: CheckoutRequest, quote: Quote) -> EmailMessage:
    """JSON-safe payload: amounts as strings, dates ISO-8601."""
    breakdown = order.breakdown
    settings = quote.settings
    address = request.shipping_address
    method = request.shipping_method

    data: dict[str, Any] = {
        "orderNumber": order.order_number,
        "orderDate": order.created_at.isoformat(),
        "customerName": quote.customer.name or address.full_name,
        "items": [
            {"name": line.name, "quantity": line.quantity, "price": str(line.unit_price)}
            for line in quote.manifest.accepted
        ],
        "subtotal": str(breakdown.subtotal),
        "tax": str(breakdown.tax),
        "shippingCost": str(breakdown.shipping_cost),
        "discountAmount": str(breakdown.discount_amount),
        "couponCode": order.coupon_code,
        "total": str(breakdown.total),
        "shippingAddress": {
            "fullName": address.full_name,
            "addressLine1": address.address_line1,
            "addressLine2": address.address_line2,
            "city": address.city,
            "state": address.state,
            "postalCode": address.postal_code,
            "country": address.country,
            "phone": address.phone,
        },
        "shippingMethod": (
            {"name": method.name, "description": method.description, "price": str(method.price)}
            if method is not None
            else None
        ),
        "taxRatePercentage": str(settings.tax_rate_percent),
        "isFreeShippingActive": settings.free_shipping_active,
        "freeShippingThreshold": (
            str(settings.free_shipping_threshold)
            if settings.free_shipping_threshold is not None
            else None
        ),
    }
    return EmailMessage(
        to=quote.customer.email,
        subject=f"Order confirmation #{order.order_number}",
        template=CONFIRMATION_TEMPLATE,
        data=data,
    )


class NotificationDispatcher:
    def __init__(self, sender: EmailSender) -> None:
        self._sender = sender

    async def __call__(self, order: PlacedOrder, request: CheckoutRequest, quote: Quote) -> EmailMessage:
        message = build_confirmation(order, request, quote)
        await self._sender.send(message)
        return message


__all__ = (
    "CONFIRMATION_TEMPLATE",
    "EmailMessage",
    "EmailSender",
    "LoggingEmailSender",
    "build_confirmation",
    "NotificationDispatcher",
)
