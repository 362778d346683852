"""Shared builders and test doubles."""

import asyncio
from collections.abc import Mapping
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal

from kungfu import Error, Ok
from sqlalchemy import func, select

from stemshop.config import ShopConfig
from stemshop.db import BookRow, CouponRow, ProductRow, create_database
from stemshop.domain import (
    CartLine,
    CheckoutRequest,
    ClientPricing,
    GuestInfo,
    SessionUser,
    ShippingAddress,
    ShippingMethod,
)
from stemshop.effects import EmailMessage
from stemshop.pipeline import CheckoutDeps, CheckoutService
from stemshop.pricing import StaticSettingsProvider

NOW = datetime(2025, 6, 1, 12, 0, 0)

ADDRESS = ShippingAddress(
    full_name="Ada Lovelace",
    address_line1="12 Analytical St",
    city="London",
    state="Greater London",
    postal_code="N1 9GU",
    country="UK",
    phone="+44 20 0000 0000",
)


# ═══════════════════════════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def database(url):
    session_factory, engine = await create_database(url)
    try:
        yield session_factory
    finally:
        await engine.dispose()


async def seed(session_factory, *rows):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(rows)


def seed_sync(url, *rows):
    async def _seed():
        async with database(url) as session_factory:
            await seed(session_factory, *rows)

    asyncio.run(_seed())


async def count(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def fetch(session_factory, model, key):
    async with session_factory() as session:
        return await session.get(model, key)


def product(id, price="10.00", stock=10, name=None, active=True):
    return ProductRow(
        id=id,
        name=name or f"Product {id}",
        price=Decimal(price),
        stock_quantity=stock,
        reserved_quantity=0,
        total_sold=0,
        is_active=active,
    )


def book(id, price="15.00", name=None, active=True):
    return BookRow(id=id, name=name or f"Book {id}", price=Decimal(price), is_active=active)


def coupon(code, type="PERCENTAGE", value="10", **fields):
    return CouponRow(code=code, type=type, value=Decimal(value), **fields)


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


def line(item_id, price="10.00", quantity=1, name=None, is_book=None, language=None):
    return CartLine(
        item_id=item_id,
        name=name or f"Item {item_id}",
        price=Decimal(price),
        quantity=quantity,
        is_book=is_book,
        selected_language=language,
    )


def request(
    *lines,
    guest_email="guest@example.com",
    user=None,
    coupon_code=None,
    payment_intent_id=None,
    shipping_price=None,
    client=None,
):
    guest = None
    if user is None and guest_email is not None:
        guest = GuestInfo(email=guest_email, is_guest_checkout=True)
    return CheckoutRequest(
        items=tuple(lines),
        shipping_address=ADDRESS,
        shipping_method=ShippingMethod(name="Standard", price=Decimal(shipping_price)) if shipping_price else None,
        coupon_code=coupon_code,
        client_pricing=client or ClientPricing(),
        guest=guest,
        session_user=user,
        payment_intent_id=payment_intent_id,
    )


def member(id="user-1", email="member@example.com"):
    return SessionUser(id=id, email=email, name="Member")


# ═══════════════════════════════════════════════════════════════════════════════
# Doubles
# ═══════════════════════════════════════════════════════════════════════════════


class RecordingEmailSender:
    def __init__(self):
        self.sent: list[EmailMessage] = []

    async def send(self, message):
        self.sent.append(message)


class FailingEmailSender:
    async def send(self, message):
        raise ConnectionError("smtp down")


class HangingEmailSender:
    async def send(self, message):
        await asyncio.sleep(30)


class RecordingDelivery:
    def __init__(self):
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def process_order(self, order_id, language_preferences):
        self.calls.append((order_id, dict(language_preferences)))


class FailingDelivery:
    async def process_order(self, order_id, language_preferences):
        raise RuntimeError("delivery service unavailable")


class FailingSettings:
    async def fetch(self) -> Mapping[str, str]:
        raise ConnectionError("settings store down")


def make_service(
    session_factory,
    *,
    settings=None,
    email_sender=None,
    delivery=None,
    clock=lambda: NOW,
    **config,
):
    config.setdefault("effect_timeout_seconds", 1.0)
    deps = CheckoutDeps.from_database(
        session_factory,
        ShopConfig(**config),
        email_sender=email_sender or RecordingEmailSender(),
        digital_delivery=delivery or RecordingDelivery(),
        settings=settings or StaticSettingsProvider(),
        clock=clock,
    )
    return CheckoutService(deps)


def unwrap(result):
    match result:
        case Ok(value):
            return value
        case Error(error):
            raise AssertionError(f"expected Ok, got {error!r}")
