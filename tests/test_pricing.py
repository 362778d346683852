"""Tests for the pricing engine and the settings provider."""

import asyncio
from decimal import Decimal

from stemshop.domain import ClientPricing, PhysicalLine, PricingSettings
from stemshop.pricing import (
    CachedSettingsProvider,
    StaticSettingsProvider,
    compute_breakdown,
    compute_subtotal,
    compute_tax,
    default_settings,
    effective_discount,
    load_pricing_settings,
)

from tests.support import FailingSettings


def settings(rate="21", apply_tax=True, free_active=False, threshold=None):
    return PricingSettings(
        tax_rate_percent=Decimal(rate),
        apply_tax=apply_tax,
        free_shipping_active=free_active,
        free_shipping_threshold=Decimal(threshold) if threshold is not None else None,
    )


class TestSubtotal:
    def test_sums_price_times_quantity(self):
        lines = [
            PhysicalLine("p1", "Robot kit", Decimal("19.99"), 2),
            PhysicalLine("p2", "Magnet set", Decimal("5.50"), 1),
        ]
        assert compute_subtotal(lines) == Decimal("45.48")

    def test_client_subtotal_is_an_override(self):
        lines = [PhysicalLine("p1", "Robot kit", Decimal("19.99"), 2)]
        client = ClientPricing(subtotal=Decimal("30"))
        assert compute_subtotal(lines, client) == Decimal("30.00")

    def test_client_subtotal_ignored_when_not_honored(self):
        lines = [PhysicalLine("p1", "Robot kit", Decimal("19.99"), 2)]
        client = ClientPricing(subtotal=Decimal("30"))
        assert compute_subtotal(lines, client, honor_client=False) == Decimal("39.98")


class TestTax:
    def test_vat_inclusive_backward_tax(self):
        assert compute_tax(Decimal("121"), settings()) == Decimal("21.00")

    def test_no_tax_when_inactive(self):
        assert compute_tax(Decimal("121"), settings(apply_tax=False)) == Decimal("0")

    def test_rounded_to_cents(self):
        # 100 - 100 / 1.21 = 17.355...
        assert compute_tax(Decimal("100"), settings()) == Decimal("17.36")


class TestShipping:
    def test_free_shipping_threshold_met(self):
        result = compute_breakdown(
            Decimal("80"),
            settings(free_active=True, threshold="75"),
            method_price=Decimal("9.99"),
        )
        assert result.shipping_cost == Decimal("0")

    def test_threshold_inactive_keeps_method_price(self):
        result = compute_breakdown(
            Decimal("80"),
            settings(free_active=False, threshold="75"),
            method_price=Decimal("9.99"),
        )
        assert result.shipping_cost == Decimal("9.99")

    def test_below_threshold_keeps_method_price(self):
        result = compute_breakdown(
            Decimal("74.99"),
            settings(free_active=True, threshold="75"),
            method_price=Decimal("4.50"),
        )
        assert result.shipping_cost == Decimal("4.50")

    def test_declared_shipping_still_zeroed_by_threshold(self):
        result = compute_breakdown(
            Decimal("100"),
            settings(free_active=True, threshold="75"),
            method_price=Decimal("4.50"),
            client=ClientPricing(shipping_cost=Decimal("7")),
        )
        assert result.shipping_cost == Decimal("0")


class TestTotal:
    def test_total_formula(self):
        result = compute_breakdown(
            Decimal("121"),
            settings(),
            method_price=Decimal("5"),
            discount=Decimal("10"),
        )
        assert result.total == Decimal("137.00")

    def test_total_never_negative(self):
        result = compute_breakdown(
            Decimal("10"),
            settings(apply_tax=False),
            discount=Decimal("50"),
        )
        assert result.total == Decimal("0")

    def test_declared_negative_total_is_clamped(self):
        result = compute_breakdown(
            Decimal("10"),
            settings(),
            client=ClientPricing(total=Decimal("-5")),
        )
        assert result.total == Decimal("0")

    def test_deterministic(self):
        args = (Decimal("57.30"), settings(free_active=True, threshold="50"))
        kwargs = {"method_price": Decimal("3.99"), "discount": Decimal("5.73")}
        assert compute_breakdown(*args, **kwargs) == compute_breakdown(*args, **kwargs)


class TestEffectiveDiscount:
    def test_declared_cannot_raise_the_discount(self):
        assert effective_discount(Decimal("10"), Decimal("99")) == Decimal("10.00")

    def test_declared_can_lower_the_discount(self):
        assert effective_discount(Decimal("10"), Decimal("4")) == Decimal("4.00")

    def test_declared_without_coupon_is_zero(self):
        assert effective_discount(Decimal("0"), Decimal("25")) == Decimal("0.00")


class TestSettingsProvider:
    def test_defaults_when_store_is_empty(self):
        result = asyncio.run(load_pricing_settings(StaticSettingsProvider()))
        assert result == default_settings()
        assert result.tax_rate_percent == Decimal("21")
        assert result.apply_tax is True
        assert result.free_shipping_active is False

    def test_reads_every_key(self):
        provider = StaticSettingsProvider({
            "tax.rate": "19",
            "tax.active": "false",
            "shipping.free_threshold.active": "true",
            "shipping.free_threshold.price": "250",
        })
        result = asyncio.run(load_pricing_settings(provider))
        assert result.tax_rate_percent == Decimal("19")
        assert result.apply_tax is False
        assert result.free_shipping_active is True
        assert result.free_shipping_threshold == Decimal("250.00")

    def test_unparsable_key_falls_back_alone(self):
        provider = StaticSettingsProvider({"tax.rate": "lots", "tax.active": "false"})
        result = asyncio.run(load_pricing_settings(provider))
        assert result.tax_rate_percent == Decimal("21")
        assert result.apply_tax is False

    def test_store_failure_falls_back_to_defaults(self):
        result = asyncio.run(load_pricing_settings(FailingSettings(), Decimal("20")))
        assert result.tax_rate_percent == Decimal("20")
        assert result.apply_tax is True
        assert result.free_shipping_active is False


class CountingProvider:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    async def fetch(self):
        self.calls += 1
        if self.fail:
            raise ConnectionError("down")
        return {"tax.rate": "21"}


class TestCachedSettingsProvider:
    def test_serves_from_cache_within_ttl(self):
        inner = CountingProvider()
        now = [100.0]
        cached = CachedSettingsProvider(inner, ttl_seconds=30, clock=lambda: now[0])

        async def scenario():
            await cached.fetch()
            now[0] += 10
            await cached.fetch()
            now[0] += 30
            await cached.fetch()

        asyncio.run(scenario())
        assert inner.calls == 2

    def test_failures_are_not_cached(self):
        inner = CountingProvider(fail=True)
        cached = CachedSettingsProvider(inner, ttl_seconds=30, clock=lambda: 0.0)

        async def scenario():
            for _ in range(2):
                await load_pricing_settings(cached)

        asyncio.run(scenario())
        assert inner.calls == 2
