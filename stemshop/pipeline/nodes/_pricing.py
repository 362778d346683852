"""
Pricing — settings, subtotal, coupon, breakdown, quote.

Read-only. Settings and coupon lookups soft-fail to defaults / no coupon.
"""

from decimal import Decimal

import structlog

from stemshop._types import ZERO
from stemshop.domain import CouponGrant, PriceBreakdown, PricingSettings, Quote
from stemshop.pipeline._graph import node
from stemshop.pipeline.nodes._cart import ResolvedCartNode
from stemshop.pipeline.nodes._customer import CustomerNode
from stemshop.pipeline.nodes._input import DepsNode, RequestNode
from stemshop.pricing import (
    compute_breakdown,
    compute_subtotal,
    effective_discount,
    load_pricing_settings,
    validate_coupon,
)

logger = structlog.get_logger()


@node
class StoreSettingsNode:
    def __init__(self, data: PricingSettings) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, deps: DepsNode) -> "StoreSettingsNode":
        config = deps.data.config
        settings = await load_pricing_settings(
            deps.data.settings,
            fallback_tax_rate_percent=config.default_tax_rate_percent,
        )
        return cls(settings)


@node
class SubtotalNode:
    def __init__(self, subtotal: Decimal) -> None:
        self.subtotal = subtotal

    @classmethod
    def __compose__(
        cls,
        request: RequestNode,
        cart: ResolvedCartNode,
        deps: DepsNode,
    ) -> "SubtotalNode":
        subtotal = compute_subtotal(
            cart.manifest.accepted,
            request.data.client_pricing,
            honor_client=deps.data.config.honor_client_pricing,
        )
        return cls(subtotal)


@node
class CouponNode:
    """Validated coupon or None. Never fails."""

    def __init__(self, data: CouponGrant | None) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        customer: CustomerNode,
        subtotal: SubtotalNode,
        deps: DepsNode,
    ) -> "CouponNode":
        grant = await validate_coupon(
            deps.data.coupons,
            request.data.coupon_code,
            customer.data.user_id,
            subtotal.subtotal,
            deps.data.clock(),
        )
        return cls(grant)


@node
class PricingNode:
    def __init__(self, data: PriceBreakdown) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        request: RequestNode,
        settings: StoreSettingsNode,
        subtotal: SubtotalNode,
        coupon: CouponNode,
        deps: DepsNode,
    ) -> "PricingNode":
        req = request.data
        honor = deps.data.config.honor_client_pricing

        declared = req.client_pricing.discount_amount if honor else None
        server = coupon.data.discount if coupon.data is not None else ZERO
        discount = effective_discount(server, declared)
        if declared is not None and declared > server:
            logger.warning(
                "client_discount_capped",
                declared=str(declared),
                validated=str(server),
            )

        breakdown = compute_breakdown(
            subtotal.subtotal,
            settings.data,
            method_price=req.shipping_method.price if req.shipping_method else ZERO,
            discount=discount,
            client=req.client_pricing,
            honor_client=honor,
        )
        return cls(breakdown)


@node
class QuoteNode:
    """Everything decided before writing. Also the target of /checkout/quote."""

    def __init__(self, data: Quote) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        customer: CustomerNode,
        cart: ResolvedCartNode,
        settings: StoreSettingsNode,
        coupon: CouponNode,
        pricing: PricingNode,
    ) -> "QuoteNode":
        return cls(Quote(
            customer=customer.data,
            manifest=cart.manifest,
            settings=settings.data,
            coupon=coupon.data,
            breakdown=pricing.data,
        ))


__all__ = (
    "StoreSettingsNode",
    "SubtotalNode",
    "CouponNode",
    "PricingNode",
    "QuoteNode",
)
