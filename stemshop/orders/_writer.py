"""
Order writer — the only write transaction in a checkout.

One transaction, in order:

    user (guest upsert) → address (dedupe) → coupon claim (re-validated)
        → Order → CouponUsage → OrderItems + stock reservation

Anything raising inside rolls back everything. Stock is reserved with a
guarded UPDATE (stock_quantity >= quantity); a miss is InsufficientStockError.

A payment intent id maps to at most one order. Replays return the stored
order untouched.
"""

from __future__ import annotations

from datetime import timedelta

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemshop._types import Clock, Money, ZERO, utcnow
from stemshop.db import CouponRow, CouponUsageRow, OrderItemRow, OrderRow, ProductRow
from stemshop.domain import (
    CheckoutRequest,
    CouponGrant,
    DigitalLine,
    OrderStatus,
    PaymentStatus,
    PhysicalLine,
    PlacedOrder,
    PriceBreakdown,
    Quote,
)
from stemshop.errors import InsufficientStockError
from stemshop.orders._customers import ensure_address, ensure_user
from stemshop.orders._numbers import OrderNumbers, order_number_factory
from stemshop.pricing import (
    compute_breakdown,
    count_user_usages,
    effective_discount,
    evaluate_coupon,
    snapshot_from_row,
)

logger = structlog.get_logger()


def placed_from_row(row: OrderRow, *, replayed: bool = False) -> PlacedOrder:
    return PlacedOrder(
        order_id=row.id,
        order_number=row.order_number,
        user_id=row.user_id,
        status=OrderStatus(row.status),
        breakdown=PriceBreakdown(
            subtotal=row.subtotal,
            tax=row.tax,
            shipping_cost=row.shipping_cost,
            discount_amount=row.discount_amount,
            total=row.total,
        ),
        coupon_code=row.coupon_code,
        created_at=row.created_at,
        replayed=replayed,
    )


class OrderWriter:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock = utcnow,
        order_numbers: OrderNumbers | None = None,
        max_downloads: int = 5,
        download_window: timedelta = timedelta(days=30),
        honor_client_pricing: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._order_numbers = order_numbers or order_number_factory()
        self._max_downloads = max_downloads
        self._download_window = download_window
        self._honor_client_pricing = honor_client_pricing

    # ───────────────────────────────────────────────────────────────────────────
    # Public
    # ───────────────────────────────────────────────────────────────────────────

    async def find_by_payment_intent(self, payment_intent_id: str) -> PlacedOrder | None:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(OrderRow).where(OrderRow.payment_intent_id == payment_intent_id)
            )
            return placed_from_row(row, replayed=True) if row is not None else None

    async def write(self, request: CheckoutRequest, quote: Quote) -> PlacedOrder:
        intent = request.payment_intent_id
        if intent:
            existing = await self.find_by_payment_intent(intent)
            if existing is not None:
                logger.info("order_replayed", order_id=existing.order_id, payment_intent_id=intent)
                return existing

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    placed = await self._write(session, request, quote)
        except IntegrityError:
            # Lost the race against a concurrent checkout with the same intent
            if intent:
                existing = await self.find_by_payment_intent(intent)
                if existing is not None:
                    logger.info("order_replayed", order_id=existing.order_id, payment_intent_id=intent)
                    return existing
            raise

        logger.info(
            "order_committed",
            order_id=placed.order_id,
            order_number=placed.order_number,
            user_id=placed.user_id,
            items=len(quote.manifest.accepted),
            total=str(placed.breakdown.total),
        )
        return placed

    # ───────────────────────────────────────────────────────────────────────────
    # Transaction body
    # ───────────────────────────────────────────────────────────────────────────

    async def _write(
        self,
        session: AsyncSession,
        request: CheckoutRequest,
        quote: Quote,
    ) -> PlacedOrder:
        now = self._clock()

        user_id = await ensure_user(session, quote.customer, request.shipping_address.full_name)
        address_id = await ensure_address(session, user_id, request.shipping_address)

        coupon, breakdown = await self._claim_coupon(session, request, quote, user_id)

        order = OrderRow(
            order_number=self._order_numbers(),
            user_id=user_id,
            subtotal=breakdown.subtotal,
            tax=breakdown.tax,
            shipping_cost=breakdown.shipping_cost,
            discount_amount=breakdown.discount_amount,
            total=breakdown.total,
            status=OrderStatus.PROCESSING.value,
            payment_status=PaymentStatus.PAID.value,
            payment_method="card",
            payment_intent_id=request.payment_intent_id or None,
            shipping_address_id=address_id,
            coupon_id=coupon.coupon_id if coupon else None,
            coupon_code=coupon.code if coupon else None,
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )
        session.add(order)
        await session.flush()

        if coupon is not None and breakdown.discount_amount > 0:
            session.add(CouponUsageRow(
                coupon_id=coupon.coupon_id,
                user_id=user_id,
                order_id=order.id,
                used_at=now,
            ))
            await session.flush()

        for position, line in enumerate(quote.manifest.accepted):
            match line:
                case PhysicalLine():
                    session.add(OrderItemRow(
                        order_id=order.id,
                        position=position,
                        product_id=line.product_id,
                        name=line.name,
                        price=line.unit_price,
                        quantity=line.quantity,
                        is_digital=False,
                    ))
                    await session.flush()
                    await self._reserve_stock(session, line)
                case DigitalLine():
                    session.add(OrderItemRow(
                        order_id=order.id,
                        position=position,
                        book_id=line.book_id,
                        name=line.name,
                        price=line.unit_price,
                        quantity=line.quantity,
                        is_digital=True,
                        max_downloads=self._max_downloads,
                        download_expires_at=now + self._download_window,
                    ))
                    await session.flush()

        return placed_from_row(order)

    async def _reserve_stock(self, session: AsyncSession, line: PhysicalLine) -> None:
        """stock -= q, reserved += q, only while stock covers q."""
        result = await session.execute(
            update(ProductRow)
            .where(
                ProductRow.id == line.product_id,
                ProductRow.stock_quantity >= line.quantity,
            )
            .values(
                stock_quantity=ProductRow.stock_quantity - line.quantity,
                reserved_quantity=ProductRow.reserved_quantity + line.quantity,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "stock_reservation_failed",
                product_id=line.product_id,
                quantity=line.quantity,
            )
            raise InsufficientStockError(line.product_id, line.quantity)

    async def _claim_coupon(
        self,
        session: AsyncSession,
        request: CheckoutRequest,
        quote: Quote,
        user_id: str,
    ) -> tuple[CouponGrant | None, PriceBreakdown]:
        """
        Re-validate the quoted coupon against current rows and claim one use.

        The global cap is claimed with a conditional increment. A coupon lost
        since quoting is dropped and the order re-priced without discount.
        """
        grant = quote.coupon
        if grant is None:
            return None, quote.breakdown

        # Row lock serializes same-coupon claims before the per-user count
        row = await session.scalar(
            select(CouponRow)
            .where(CouponRow.id == grant.coupon_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        fresh = None
        if row is not None:
            usages = await count_user_usages(session, row.id, user_id)
            fresh = evaluate_coupon(
                snapshot_from_row(row, usages),
                quote.breakdown.subtotal,
                self._clock(),
            )

        if fresh is not None:
            declared = request.client_pricing.discount_amount if self._honor_client_pricing else None
            discount = effective_discount(fresh.discount, declared)
            if discount <= 0:
                return fresh, self._reprice(request, quote, ZERO)

            claimed = await session.execute(
                update(CouponRow)
                .where(
                    CouponRow.id == fresh.coupon_id,
                    or_(
                        CouponRow.max_uses.is_(None),
                        CouponRow.max_uses == 0,
                        CouponRow.current_uses < CouponRow.max_uses,
                    ),
                )
                .values(current_uses=CouponRow.current_uses + 1)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 1:
                return fresh, self._reprice(request, quote, discount)

        logger.info("coupon_lost_in_transaction", code=grant.code, coupon_id=grant.coupon_id)
        return None, self._reprice(request, quote, ZERO)

    def _reprice(self, request: CheckoutRequest, quote: Quote, discount: Money) -> PriceBreakdown:
        if discount == quote.breakdown.discount_amount:
            return quote.breakdown
        method_price = request.shipping_method.price if request.shipping_method else ZERO
        return compute_breakdown(
            quote.breakdown.subtotal,
            quote.settings,
            method_price=method_price,
            discount=discount,
            client=request.client_pricing,
            honor_client=self._honor_client_pricing,
        )


__all__ = ("OrderWriter", "placed_from_row")
