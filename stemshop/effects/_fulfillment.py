"""
Digital fulfillment trigger.

Runs after commit. Re-reads the order, hands digital items to the delivery
service with per-item language preferences, and marks digital-only orders
DELIVERED once the hand-off succeeded.

Safe to re-invoke: it only derives from the persisted order, and the status
transition is conditional on PROCESSING.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from stemshop._types import Clock, utcnow
from stemshop.db import OrderItemRow, OrderRow
from stemshop.domain import CartLine, OrderStatus

logger = structlog.get_logger()


class DigitalDelivery(Protocol):
    """External service that creates downloads for digital order items."""

    async def process_order(self, order_id: str, language_preferences: Mapping[str, str]) -> None:
        ...


class LoggingDigitalDelivery:
    """Stand-in used when no delivery service is wired."""

    async def process_order(self, order_id: str, language_preferences: Mapping[str, str]) -> None:
        logger.info(
            "digital_delivery_requested",
            order_id=order_id,
            languages=dict(language_preferences),
        )


@dataclass(frozen=True, slots=True)
class FulfillmentOutcome:
    order_id: str
    digital_items: int
    delivered: bool


def language_preferences(
    items: Sequence[OrderItemRow],
    cart_lines: Sequence[CartLine],
) -> dict[str, str]:
    """
    order item id → requested language.

    Order items keep no cart-line id, so the join is on display name; the
    first cart line with that name wins.
    """
    prefs: dict[str, str] = {}
    for item in items:
        line = next((l for l in cart_lines if l.name == item.name), None)
        if line is not None and line.selected_language:
            prefs[item.id] = line.selected_language
    return prefs


class DigitalFulfillmentTrigger:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        delivery: DigitalDelivery,
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._delivery = delivery
        self._clock = clock

    async def __call__(self, order_id: str, cart_lines: Sequence[CartLine] = ()) -> FulfillmentOutcome:
        async with self._session_factory() as session:
            order = await session.scalar(
                select(OrderRow)
                .where(OrderRow.id == order_id)
                .options(selectinload(OrderRow.items))
            )
            if order is None:
                raise LookupError(f"order {order_id} not found")
            items = list(order.items)

        digital = [item for item in items if item.book_id is not None]
        if not digital:
            return FulfillmentOutcome(order_id, digital_items=0, delivered=False)

        await self._delivery.process_order(order_id, language_preferences(digital, cart_lines))

        if not all(item.is_digital for item in items):
            return FulfillmentOutcome(order_id, digital_items=len(digital), delivered=False)

        now = self._clock()
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(OrderRow)
                    .where(
                        OrderRow.id == order_id,
                        OrderRow.status == OrderStatus.PROCESSING.value,
                    )
                    .values(
                        status=OrderStatus.DELIVERED.value,
                        delivered_at=now,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
        logger.info("order_auto_delivered", order_id=order_id, digital_items=len(digital))
        return FulfillmentOutcome(order_id, digital_items=len(digital), delivered=True)


__all__ = (
    "DigitalDelivery",
    "LoggingDigitalDelivery",
    "FulfillmentOutcome",
    "language_preferences",
    "DigitalFulfillmentTrigger",
)
