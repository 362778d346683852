"""
Coupon validator.

Soft-fail: a coupon that fails any precondition, or whose lookup raises,
is simply not applied. Nothing here ever fails a checkout.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemshop._types import Money, ZERO, money
from stemshop.db import CouponRow, CouponUsageRow
from stemshop.domain import CouponGrant, CouponSnapshot, CouponType

logger = structlog.get_logger()


def normalize_code(code: str) -> str:
    return code.strip().upper()


# ═══════════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════════


def rejection_reason(coupon: CouponSnapshot, subtotal: Money, now: datetime) -> str | None:
    """First failed precondition, or None when the coupon applies."""
    if not coupon.is_active:
        return "inactive"
    if coupon.starts_at is not None and now < coupon.starts_at:
        return "not_started"
    if coupon.expires_at is not None and now > coupon.expires_at:
        return "expired"
    if coupon.max_uses and coupon.current_uses >= coupon.max_uses:
        return "max_uses_reached"
    if coupon.max_uses_per_user and coupon.user_usage_count >= coupon.max_uses_per_user:
        return "user_limit_reached"
    if coupon.minimum_order_value and subtotal < coupon.minimum_order_value:
        return "below_minimum"
    return None


def discount_for(coupon: CouponSnapshot, subtotal: Money) -> Money:
    """
    PERCENTAGE   → subtotal × value / 100, clipped to max_discount_amount
    FIXED_AMOUNT → min(value, subtotal)

    Rounded half-up to cents.
    """
    match coupon.type:
        case CouponType.PERCENTAGE:
            amount = subtotal * coupon.value / 100
            if coupon.max_discount_amount and amount > coupon.max_discount_amount:
                amount = coupon.max_discount_amount
        case CouponType.FIXED_AMOUNT:
            amount = min(coupon.value, subtotal)
    return money(max(ZERO, amount))


def evaluate_coupon(
    coupon: CouponSnapshot | None,
    subtotal: Money,
    now: datetime,
) -> CouponGrant | None:
    if coupon is None:
        return None
    reason = rejection_reason(coupon, subtotal, now)
    if reason is not None:
        logger.info("coupon_ignored", code=coupon.code, reason=reason)
        return None
    return CouponGrant(
        coupon_id=coupon.id,
        code=coupon.code,
        discount=discount_for(coupon, subtotal),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class CouponStore(Protocol):
    async def find(self, code: str, user_id: str | None) -> CouponSnapshot | None:
        ...


def snapshot_from_row(row: CouponRow, user_usage_count: int) -> CouponSnapshot:
    return CouponSnapshot(
        id=row.id,
        code=row.code,
        type=CouponType(row.type),
        value=row.value,
        is_active=row.is_active,
        current_uses=row.current_uses,
        user_usage_count=user_usage_count,
        max_discount_amount=row.max_discount_amount,
        minimum_order_value=row.minimum_order_value,
        starts_at=row.starts_at,
        expires_at=row.expires_at,
        max_uses=row.max_uses,
        max_uses_per_user=row.max_uses_per_user,
    )


async def count_user_usages(session: AsyncSession, coupon_id: str, user_id: str | None) -> int:
    if user_id is None:
        return 0
    result = await session.execute(
        select(func.count(CouponUsageRow.id)).where(
            CouponUsageRow.coupon_id == coupon_id,
            CouponUsageRow.user_id == user_id,
        )
    )
    return int(result.scalar_one())


class SqlCouponStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find(self, code: str, user_id: str | None) -> CouponSnapshot | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(CouponRow).where(CouponRow.code == normalize_code(code))
            )
            if row is None:
                return None
            usages = await count_user_usages(session, row.id, user_id)
            return snapshot_from_row(row, usages)


# ═══════════════════════════════════════════════════════════════════════════════
# validate_coupon(): lookup + rules, soft-fail
# ═══════════════════════════════════════════════════════════════════════════════


async def validate_coupon(
    store: CouponStore,
    code: str | None,
    user_id: str | None,
    subtotal: Money,
    now: datetime,
) -> CouponGrant | None:
    if not code or not code.strip():
        return None
    try:
        coupon = await store.find(normalize_code(code), user_id)
    except Exception as e:
        logger.warning("coupon_lookup_failed", code=code, error=repr(e))
        return None
    if coupon is None:
        logger.info("coupon_ignored", code=normalize_code(code), reason="not_found")
        return None
    return evaluate_coupon(coupon, subtotal, now)


__all__ = (
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
