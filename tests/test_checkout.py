"""End-to-end checkout through the graph against a SQLite file."""

import asyncio
from decimal import Decimal

from kungfu import Error, Ok
from sqlalchemy import select, update

from stemshop.db import AddressRow, CouponRow, CouponUsageRow, OrderItemRow, OrderRow, ProductRow, UserRow
from stemshop.domain import ClientPricing, OrderStatus, RejectReason
from stemshop.errors import EmptyOrderError, IdentityError, InsufficientStockError

from tests.support import (
    NOW,
    FailingDelivery,
    RecordingDelivery,
    RecordingEmailSender,
    book,
    count,
    coupon,
    database,
    fetch,
    line,
    make_service,
    member,
    product,
    request,
    seed,
    unwrap,
)


def run(db_url, scenario, *rows, **service_options):
    async def wrapper():
        async with database(db_url) as session_factory:
            await seed(session_factory, *rows)
            service = make_service(session_factory, **service_options)
            return await scenario(session_factory, service)

    return asyncio.run(wrapper())


async def order_row(session_factory, order_id):
    async with session_factory() as session:
        return await session.get(OrderRow, order_id)


async def order_items(session_factory, order_id):
    async with session_factory() as session:
        rows = await session.scalars(
            select(OrderItemRow).where(OrderItemRow.order_id == order_id).order_by(OrderItemRow.position)
        )
        return list(rows)


async def coupon_by_code(session_factory, code):
    async with session_factory() as session:
        return await session.scalar(select(CouponRow).where(CouponRow.code == code))


class TestHappyPath:
    def test_physical_order(self, db_url):
        email = RecordingEmailSender()

        async def scenario(sf, service):
            match await service.place_order(request(line("p1", quantity=2))):
                case Ok(receipt):
                    pass
                case Error(error):
                    raise AssertionError(error)
            row = await order_row(sf, receipt.order_id)
            items = await order_items(sf, receipt.order_id)
            stock = await fetch(sf, ProductRow, "p1")
            return receipt, row, items, stock

        receipt, row, items, stock = run(db_url, scenario, product("p1", price="10.00", stock=5), email_sender=email)

        assert receipt.order_number.startswith("ORD-")
        assert receipt.failed_effects == ()
        assert row.status == OrderStatus.PROCESSING
        assert row.payment_status == "PAID"
        assert row.subtotal == Decimal("20.00")
        assert row.created_at == NOW
        assert [(i.product_id, i.quantity, i.is_digital) for i in items] == [("p1", 2, False)]
        assert (stock.stock_quantity, stock.reserved_quantity, stock.total_sold) == (3, 2, 0)
        assert len(email.sent) == 1
        assert email.sent[0].to == "guest@example.com"

    def test_dropped_lines_do_not_block_the_order(self, db_url):
        async def scenario(sf, service):
            result = await service.place_order(request(
                line("p1"),
                line("gone"),
                line("old", is_book=True, name="Atlas (Deleted)"),
            ))
            receipt = unwrap(result)
            return receipt, await order_items(sf, receipt.order_id)

        receipt, items = run(db_url, scenario, product("p1"))

        assert [i.product_id for i in items] == ["p1"]
        assert {r.item_id: r.reason for r in receipt.manifest.rejected} == {
            "gone": RejectReason.NOT_FOUND,
            "old": RejectReason.DELETED,
        }

    def test_digital_only_order_is_delivered(self, db_url):
        delivery = RecordingDelivery()

        async def scenario(sf, service):
            receipt = unwrap(await service.place_order(request(
                line("b1", is_book=True, name="Coding Book", language="es"),
            )))
            return receipt, await order_row(sf, receipt.order_id), await order_items(sf, receipt.order_id)

        receipt, row, items = run(db_url, scenario, book("b1"), delivery=delivery)

        assert row.status == OrderStatus.DELIVERED
        assert row.delivered_at == NOW
        (item,) = items
        assert item.is_digital and item.book_id == "b1"
        assert item.max_downloads == 5
        assert item.download_expires_at is not None
        assert delivery.calls == [(receipt.order_id, {item.id: "es"})]

    def test_mixed_order_stays_processing(self, db_url):
        delivery = RecordingDelivery()

        async def scenario(sf, service):
            receipt = unwrap(await service.place_order(request(line("p1"), line("b1", is_book=True))))
            return await order_row(sf, receipt.order_id)

        row = run(db_url, scenario, product("p1"), book("b1"), delivery=delivery)

        assert row.status == OrderStatus.PROCESSING
        assert row.delivered_at is None
        assert len(delivery.calls) == 1


class TestEffects:
    def test_delivery_failure_keeps_the_order(self, db_url):
        async def scenario(sf, service):
            receipt = unwrap(await service.place_order(request(line("b1", is_book=True))))
            return receipt, await order_row(sf, receipt.order_id)

        receipt, row = run(db_url, scenario, book("b1"), delivery=FailingDelivery())

        assert receipt.failed_effects == ("digital_fulfillment",)
        assert row.status == OrderStatus.PROCESSING


class TestStock:
    def test_insufficient_stock(self, db_url):
        async def scenario(sf, service):
            result = await service.place_order(request(line("p1", quantity=3)))
            return result, await count(sf, OrderRow), await fetch(sf, ProductRow, "p1")

        result, orders, stock = run(db_url, scenario, product("p1", stock=2))

        match result:
            case Error(InsufficientStockError() as error):
                assert error.product_id == "p1"
            case other:
                raise AssertionError(other)
        assert orders == 0
        assert (stock.stock_quantity, stock.reserved_quantity) == (2, 0)

    def test_failure_rolls_back_everything(self, db_url):
        async def scenario(sf, service):
            result = await service.place_order(request(
                line("p1", quantity=1, price="100.00"),
                line("p2", quantity=1),
                coupon_code="SPRING",
            ))
            return (
                result,
                await count(sf, OrderRow),
                await count(sf, OrderItemRow),
                await count(sf, CouponUsageRow),
                await count(sf, UserRow),
                await fetch(sf, ProductRow, "p1"),
                await coupon_by_code(sf, "SPRING"),
            )

        result, orders, items, usages, users, p1, spring = run(
            db_url,
            scenario,
            product("p1", price="100.00", stock=5),
            product("p2", stock=0),
            coupon("SPRING"),
        )

        assert isinstance(result, Error)
        assert (orders, items, usages, users) == (0, 0, 0, 0)
        assert (p1.stock_quantity, p1.reserved_quantity) == (5, 0)
        assert spring.current_uses == 0

    def test_concurrent_checkouts_never_oversell(self, db_url):
        async def scenario(sf, service):
            results = await asyncio.gather(
                service.place_order(request(line("p1"), guest_email="a@example.com")),
                service.place_order(request(line("p1"), guest_email="b@example.com")),
            )
            return results, await fetch(sf, ProductRow, "p1"), await count(sf, OrderRow)

        results, stock, orders = run(db_url, scenario, product("p1", stock=1))

        succeeded = [r for r in results if isinstance(r, Ok)]
        failed = [r for r in results if isinstance(r, Error)]
        assert len(succeeded) == 1
        match failed:
            case [Error(InsufficientStockError())]:
                pass
            case [Error(error)]:
                raise AssertionError(f"losing checkout failed with {error.code}: {error.message}")
        assert orders == 1
        assert (stock.stock_quantity, stock.reserved_quantity) == (0, 1)

    def test_concurrent_checkouts_share_per_user_coupon_cap(self, db_url):
        async def scenario(sf, service):
            results = await asyncio.gather(
                service.place_order(request(line("p1"), user=member(), coupon_code="ONCE")),
                service.place_order(request(line("p1"), user=member(), coupon_code="ONCE")),
            )
            return results, await count(sf, CouponUsageRow), await coupon_by_code(sf, "ONCE")

        results, usages, once = run(
            db_url,
            scenario,
            UserRow(id="user-1", email="member@example.com", name="Member"),
            product("p1", stock=5),
            coupon("ONCE", max_uses_per_user=1),
        )

        receipts = [unwrap(r) for r in results]
        assert sorted(r.order.coupon_code or "" for r in receipts) == ["", "ONCE"]
        assert usages == 1
        assert once.current_uses == 1


class TestCoupons:
    def test_coupon_is_recorded(self, db_url):
        async def scenario(sf, service):
            receipt = unwrap(await service.place_order(request(
                line("p1", price="100.00"), user=member(), coupon_code="spring",
            )))
            return (
                receipt,
                await coupon_by_code(sf, "SPRING"),
                await count(sf, CouponUsageRow),
            )

        receipt, spring, usages = run(db_url, scenario, product("p1", price="100.00"), coupon("SPRING"))

        assert receipt.order.coupon_code == "SPRING"
        assert receipt.order.breakdown.discount_amount == Decimal("10.00")
        assert spring.current_uses == 1
        assert usages == 1

    def test_per_user_limit(self, db_url):
        async def scenario(sf, service):
            first = unwrap(await service.place_order(request(line("p1"), user=member(), coupon_code="ONCE")))
            second = unwrap(await service.place_order(request(line("p1"), user=member(), coupon_code="ONCE")))
            return first, second, await count(sf, CouponUsageRow)

        first, second, usages = run(
            db_url, scenario, product("p1"), coupon("ONCE", max_uses_per_user=1),
        )

        assert first.order.coupon_code == "ONCE"
        assert second.order.coupon_code is None
        assert second.order.breakdown.discount_amount == Decimal("0.00")
        assert usages == 1

    def test_client_cannot_raise_the_discount(self, db_url):
        async def scenario(sf, service):
            return unwrap(await service.place_order(request(
                line("p1", price="100.00"),
                coupon_code="SPRING",
                client=ClientPricing(discount_amount=Decimal("50.00")),
            )))

        receipt = run(db_url, scenario, product("p1", price="100.00"), coupon("SPRING"))
        assert receipt.order.breakdown.discount_amount == Decimal("10.00")

    def test_declared_discount_ignored_when_client_pricing_is_off(self, db_url):
        async def scenario(sf, service):
            req = request(
                line("p1", price="100.00"),
                coupon_code="SPRING",
                client=ClientPricing(discount_amount=Decimal("0.00")),
            )
            quote = unwrap(await service.quote(req))
            receipt = unwrap(await service.place_order(req))
            return quote, receipt, await count(sf, CouponUsageRow)

        quote, receipt, usages = run(
            db_url,
            scenario,
            product("p1", price="100.00"),
            coupon("SPRING"),
            honor_client_pricing=False,
        )

        assert quote.breakdown.discount_amount == Decimal("10.00")
        assert receipt.order.breakdown.discount_amount == Decimal("10.00")
        assert receipt.order.breakdown.total == quote.breakdown.total
        assert receipt.order.coupon_code == "SPRING"
        assert usages == 1

    def test_coupon_lost_after_quoting(self, db_url):
        async def scenario(sf, service):
            req = request(line("p1", price="100.00"), coupon_code="SPRING")
            quote = unwrap(await service.quote(req))
            assert quote.coupon is not None

            async with sf() as session:
                async with session.begin():
                    await session.execute(
                        update(CouponRow).where(CouponRow.code == "SPRING").values(is_active=False)
                    )

            placed = await service.deps.writer.write(req, quote)
            return placed, await count(sf, CouponUsageRow), await coupon_by_code(sf, "SPRING")

        placed, usages, spring = run(db_url, scenario, product("p1", price="100.00"), coupon("SPRING"))

        assert placed.coupon_code is None
        assert placed.breakdown.discount_amount == Decimal("0.00")
        assert usages == 0
        assert spring.current_uses == 0


class TestIdempotency:
    def test_payment_intent_replay(self, db_url):
        email = RecordingEmailSender()

        async def scenario(sf, service):
            req = request(line("p1"), payment_intent_id="pi_123")
            first = unwrap(await service.place_order(req))
            second = unwrap(await service.place_order(req))
            return first, second, await count(sf, OrderRow), await fetch(sf, ProductRow, "p1")

        first, second, orders, stock = run(db_url, scenario, product("p1", stock=5), email_sender=email)

        assert second.order_id == first.order_id
        assert second.order.replayed and not first.order.replayed
        assert orders == 1
        assert stock.stock_quantity == 4
        assert len(email.sent) == 1


class TestCustomers:
    def test_guest_user_and_address_are_reused(self, db_url):
        async def scenario(sf, service):
            first = unwrap(await service.place_order(request(line("p1"), guest_email="Ada@Example.com")))
            second = unwrap(await service.place_order(request(line("p1"), guest_email="ada@example.com")))
            return first, second, await count(sf, UserRow), await count(sf, AddressRow)

        first, second, users, addresses = run(db_url, scenario, product("p1"))

        assert first.order.user_id == second.order.user_id
        assert (users, addresses) == (1, 1)

    def test_guest_rows_are_flagged(self, db_url):
        async def scenario(sf, service):
            receipt = unwrap(await service.place_order(request(line("p1"))))
            return await fetch(sf, UserRow, receipt.order.user_id)

        user = run(db_url, scenario, product("p1"))
        assert user.is_guest
        assert user.email == "guest@example.com"

    def test_session_user_owns_the_order(self, db_url):
        async def scenario(sf, service):
            return unwrap(await service.place_order(request(line("p1"), user=member("user-9"))))

        receipt = run(db_url, scenario, product("p1"))
        assert receipt.order.user_id == "user-9"


class TestRejections:
    def test_missing_identity(self, db_url):
        async def scenario(sf, service):
            return await service.place_order(request(line("p1"), guest_email=None)), await count(sf, OrderRow)

        result, orders = run(db_url, scenario, product("p1"))
        match result:
            case Error(IdentityError()):
                pass
            case other:
                raise AssertionError(other)
        assert orders == 0

    def test_nothing_purchasable(self, db_url):
        async def scenario(sf, service):
            return await service.place_order(request(line("ghost"), line("p1")))

        result = run(db_url, scenario, product("p1", active=False))
        match result:
            case Error(EmptyOrderError() as error):
                assert error.code == "EMPTY_ORDER"
            case other:
                raise AssertionError(other)


class TestErrorUnwrapping:
    def test_finds_error_inside_groups_and_causes(self):
        from stemshop.pipeline import checkout_error_from

        identity = IdentityError()
        try:
            try:
                raise identity
            except IdentityError as e:
                raise RuntimeError("node failed") from e
        except RuntimeError as wrapped:
            group = ExceptionGroup("graph", [ValueError("other"), wrapped])

        assert checkout_error_from(group) is identity

    def test_none_when_absent(self):
        from stemshop.pipeline import checkout_error_from

        assert checkout_error_from(RuntimeError("plain")) is None
