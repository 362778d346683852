"""
Pricing engine — pure computation, no I/O.

Prices are VAT-inclusive, so tax is a breakdown of the subtotal:

    tax = subtotal - subtotal / (1 + rate)

    total = max(0, subtotal + tax + shipping - discount)
"""

from __future__ import annotations

from collections.abc import Iterable

from stemshop._types import Money, ZERO, money
from stemshop.domain import (
    ClientPricing,
    PriceBreakdown,
    PricingSettings,
    ResolvedLine,
)


def compute_subtotal(
    lines: Iterable[ResolvedLine],
    client: ClientPricing | None = None,
    *,
    honor_client: bool = True,
) -> Money:
    """Σ(price × quantity) over accepted lines, unless the client declared one."""
    if honor_client and client is not None and client.subtotal is not None:
        return money(client.subtotal)
    return money(sum((line.line_total for line in lines), ZERO))


def compute_tax(subtotal: Money, settings: PricingSettings) -> Money:
    if not settings.apply_tax:
        return ZERO
    return money(subtotal - subtotal / (1 + settings.tax_rate))


def compute_shipping(
    subtotal: Money,
    method_price: Money,
    settings: PricingSettings,
) -> Money:
    """Selected method price, zeroed once the free-shipping threshold is met."""
    if (
        settings.free_shipping_active
        and settings.free_shipping_threshold is not None
        and subtotal >= settings.free_shipping_threshold
    ):
        return ZERO
    return money(method_price)


def effective_discount(server: Money, declared: Money | None) -> Money:
    """
    A client-declared discount can only lower the validated one.

        effective_discount(Decimal("10"), Decimal("99")) == Decimal("10.00")
        effective_discount(Decimal("10"), Decimal("4"))  == Decimal("4.00")
    """
    if declared is None:
        return money(server)
    return money(max(ZERO, min(server, declared)))


def compute_breakdown(
    subtotal: Money,
    settings: PricingSettings,
    *,
    method_price: Money = ZERO,
    discount: Money = ZERO,
    client: ClientPricing | None = None,
    honor_client: bool = True,
) -> PriceBreakdown:
    """
    Full breakdown for an already-known subtotal and discount.

    Client-declared tax / shippingCost / total are overrides when honored.
    A declared shipping cost replaces the method price but the free-shipping
    rule still applies to it.
    """
    declared = client if honor_client and client is not None else ClientPricing()

    base_shipping = declared.shipping_cost if declared.shipping_cost is not None else method_price
    shipping = compute_shipping(subtotal, base_shipping, settings)

    tax = money(declared.tax) if declared.tax is not None else compute_tax(subtotal, settings)

    if declared.total is not None:
        total = money(max(ZERO, declared.total))
    else:
        total = money(max(ZERO, subtotal + tax + shipping - discount))

    return PriceBreakdown(
        subtotal=money(subtotal),
        tax=tax,
        shipping_cost=shipping,
        discount_amount=money(discount),
        total=total,
    )


__all__ = (
    "compute_subtotal",
    "compute_tax",
    "compute_shipping",
    "effective_discount",
    "compute_breakdown",
)
