"""
Pricing — settings, coupon validation, price breakdown.

    from stemshop import pricing as P

    settings = await P.load_pricing_settings(provider)
    subtotal = P.compute_subtotal(lines)
    grant = await P.validate_coupon(store, "SPRING10", user_id, subtotal, now)
    breakdown = P.compute_breakdown(subtotal, settings, discount=grant.discount)
"""

from stemshop.pricing._settings import (
    SettingKey,
    TAX_RATE,
    TAX_ACTIVE,
    FREE_SHIPPING_ACTIVE,
    FREE_SHIPPING_THRESHOLD,
    SETTING_KEYS,
    default_settings,
    settings_from_raw,
    SettingsProvider,
    StaticSettingsProvider,
    SqlSettingsProvider,
    CachedSettingsProvider,
    load_pricing_settings,
)
from stemshop.pricing._engine import (
    compute_subtotal,
    compute_tax,
    compute_shipping,
    effective_discount,
    compute_breakdown,
)
from stemshop.pricing._coupon import (
    normalize_code,
    rejection_reason,
    discount_for,
    evaluate_coupon,
    CouponStore,
    SqlCouponStore,
    snapshot_from_row,
    count_user_usages,
    validate_coupon,
)

__all__ = (
    # Settings
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
    # Engine
    "compute_subtotal",
    "compute_tax",
    "compute_shipping",
    "effective_discount",
    "compute_breakdown",
    # Coupons
    "normalize_code",
    "rejection_reason",
    "discount_for",
    "evaluate_coupon",
    "CouponStore",
    "SqlCouponStore",
    "snapshot_from_row",
    "count_user_usages",
    "validate_coupon",
)
