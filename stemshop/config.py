"""
Service configuration.

Read from the environment (prefix STEMSHOP_). Store-wide business settings
such as the tax rate are not here: they live in the settings store and are
read through `stemshop.pricing.SettingsProvider`.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ShopConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STEMSHOP_")

    database_url: str = "sqlite+aiosqlite:///./stemshop.db"
    log_level: str = "INFO"

    # Upper bound for each post-commit side effect (email, digital delivery)
    effect_timeout_seconds: float = 5.0

    digital_max_downloads: int = 5
    download_window_days: int = 30

    # Fallback when the settings store is unreachable
    default_tax_rate_percent: Decimal = Decimal("21")

    # Client-declared subtotal/tax/shippingCost/total are used as overrides
    honor_client_pricing: bool = True

    settings_cache_seconds: float = 30.0

    csrf_cookie_name: str = "csrf-token"
    csrf_header_name: str = "x-csrf-token"

    order_number_prefix: str = "ORD"


__all__ = ("ShopConfig",)
