"""
Checkout dependencies — everything the graph needs besides the request.

Injected into the graph as one value; DepsNode exposes it to the nodes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemshop._types import Clock, utcnow
from stemshop.catalog import CatalogStore, SqlCatalogStore
from stemshop.config import ShopConfig
from stemshop.effects import (
    DigitalDelivery,
    DigitalFulfillmentTrigger,
    EmailSender,
    LoggingDigitalDelivery,
    LoggingEmailSender,
    NotificationDispatcher,
)
from stemshop.orders import OrderWriter, UserDirectory, order_number_factory
from stemshop.pricing import (
    CachedSettingsProvider,
    CouponStore,
    SettingsProvider,
    SqlCouponStore,
    SqlSettingsProvider,
)


@dataclass(frozen=True, slots=True)
class CheckoutDeps:
    config: ShopConfig
    users: UserDirectory
    catalog: CatalogStore
    coupons: CouponStore
    settings: SettingsProvider
    writer: OrderWriter
    fulfillment: DigitalFulfillmentTrigger
    notifications: NotificationDispatcher
    clock: Clock = utcnow

    @classmethod
    def from_database(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        config: ShopConfig,
        *,
        email_sender: EmailSender | None = None,
        digital_delivery: DigitalDelivery | None = None,
        settings: SettingsProvider | None = None,
        catalog: CatalogStore | None = None,
        clock: Clock = utcnow,
    ) -> CheckoutDeps:
        """SQL-backed stores; logging stand-ins for unwired external services."""
        if settings is None:
            settings = SqlSettingsProvider(session_factory)
            if config.settings_cache_seconds > 0:
                settings = CachedSettingsProvider(settings, config.settings_cache_seconds)

        return cls(
            config=config,
            users=UserDirectory(session_factory),
            catalog=catalog or SqlCatalogStore(session_factory),
            coupons=SqlCouponStore(session_factory),
            settings=settings,
            writer=OrderWriter(
                session_factory,
                clock=clock,
                order_numbers=order_number_factory(config.order_number_prefix),
                max_downloads=config.digital_max_downloads,
                download_window=timedelta(days=config.download_window_days),
                honor_client_pricing=config.honor_client_pricing,
            ),
            fulfillment=DigitalFulfillmentTrigger(
                session_factory,
                digital_delivery or LoggingDigitalDelivery(),
                clock=clock,
            ),
            notifications=NotificationDispatcher(email_sender or LoggingEmailSender()),
            clock=clock,
        )


__all__ = ("CheckoutDeps",)
