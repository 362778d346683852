"""
Settings provider — store-wide pricing configuration.

Every key has a guaranteed default. Reading settings never fails a checkout:

- a key that is missing or does not parse → that key's default
- the store itself failing → every default
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemshop._types import money
from stemshop.db import StoreSettingRow
from stemshop.domain import PricingSettings

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════════════════
# Keys
# ═══════════════════════════════════════════════════════════════════════════════


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _parse_decimal(raw: str) -> Decimal:
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as e:
        raise ValueError(f"not a number: {raw!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"out of range: {raw!r}")
    return value


def _parse_optional_money(raw: str) -> Decimal | None:
    if not raw.strip():
        return None
    return money(_parse_decimal(raw))


@dataclass(frozen=True, slots=True)
class SettingKey[T]:
    name: str
    default: T
    parse: Callable[[str], T]

    def read(self, raw: Mapping[str, str]) -> T:
        if self.name not in raw:
            return self.default
        try:
            return self.parse(raw[self.name])
        except ValueError as e:
            logger.warning("setting_unparsable", key=self.name, error=str(e))
            return self.default


TAX_RATE = SettingKey("tax.rate", Decimal("21"), _parse_decimal)
TAX_ACTIVE = SettingKey("tax.active", True, _parse_bool)
FREE_SHIPPING_ACTIVE = SettingKey("shipping.free_threshold.active", False, _parse_bool)
FREE_SHIPPING_THRESHOLD: SettingKey[Decimal | None] = SettingKey(
    "shipping.free_threshold.price", None, _parse_optional_money
)

SETTING_KEYS: tuple[SettingKey[Any], ...] = (
    TAX_RATE,
    TAX_ACTIVE,
    FREE_SHIPPING_ACTIVE,
    FREE_SHIPPING_THRESHOLD,
)


def default_settings(tax_rate_percent: Decimal | None = None) -> PricingSettings:
    """21% tax applied, no free-shipping override."""
    return PricingSettings(
        tax_rate_percent=tax_rate_percent if tax_rate_percent is not None else TAX_RATE.default,
        apply_tax=TAX_ACTIVE.default,
        free_shipping_active=FREE_SHIPPING_ACTIVE.default,
        free_shipping_threshold=FREE_SHIPPING_THRESHOLD.default,
    )


def settings_from_raw(raw: Mapping[str, str]) -> PricingSettings:
    return PricingSettings(
        tax_rate_percent=TAX_RATE.read(raw),
        apply_tax=TAX_ACTIVE.read(raw),
        free_shipping_active=FREE_SHIPPING_ACTIVE.read(raw),
        free_shipping_threshold=FREE_SHIPPING_THRESHOLD.read(raw),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Provider Protocol: Users Implement This
# ═══════════════════════════════════════════════════════════════════════════════


class SettingsProvider(Protocol):
    """
    Raw key/value access to the settings store.

    Implementations may raise on outage; load_pricing_settings absorbs it.
    """

    async def fetch(self) -> Mapping[str, str]:
        ...


class StaticSettingsProvider:
    """Fixed settings. Used by tests and for running without a store."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = dict(values or {})

    async def fetch(self) -> Mapping[str, str]:
        return dict(self._values)


class SqlSettingsProvider:
    """Reads the store_settings table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch(self) -> Mapping[str, str]:
        keys = [key.name for key in SETTING_KEYS]
        async with self._session_factory() as session:
            rows = await session.execute(
                select(StoreSettingRow.key, StoreSettingRow.value).where(
                    StoreSettingRow.key.in_(keys)
                )
            )
            return {key: value for key, value in rows.all()}


class CachedSettingsProvider:
    """
    TTL cache in front of another provider.

    Failures are not cached: the next call goes back to the store.
    """

    def __init__(
        self,
        inner: SettingsProvider,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._inner = inner
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: Mapping[str, str] | None = None
        self._expires_at = 0.0

    async def fetch(self) -> Mapping[str, str]:
        now = self._clock()
        if self._value is not None and now < self._expires_at:
            return self._value
        value = await self._inner.fetch()
        self._value = value
        self._expires_at = now + self._ttl
        return value

    def invalidate(self) -> None:
        self._value = None


# ═══════════════════════════════════════════════════════════════════════════════
# load_pricing_settings()
# ═══════════════════════════════════════════════════════════════════════════════


async def load_pricing_settings(
    provider: SettingsProvider,
    fallback_tax_rate_percent: Decimal | None = None,
) -> PricingSettings:
    """Never raises for store failures."""
    try:
        raw = await provider.fetch()
    except Exception as e:
        logger.warning("settings_unavailable", error=repr(e))
        return default_settings(fallback_tax_rate_percent)
    return settings_from_raw(raw)


__all__ = (
    "SettingKey",
    "TAX_RATE",
    "TAX_ACTIVE",
    "FREE_SHIPPING_ACTIVE",
    "FREE_SHIPPING_THRESHOLD",
    "SETTING_KEYS",
    "default_settings",
    "settings_from_raw",
    "SettingsProvider",
    "StaticSettingsProvider",
    "SqlSettingsProvider",
    "CachedSettingsProvider",
    "load_pricing_settings",
)
