"""
Customer rows — lookups and inside-transaction upserts.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemshop.db import AddressRow, UserRow
from stemshop.domain import Customer, ShippingAddress


class UserDirectory:
    """Read-only user lookups, outside any write transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_id_by_email(self, email: str) -> str | None:
        async with self._session_factory() as session:
            return await session.scalar(
                select(UserRow.id).where(UserRow.email == email.lower())
            )


async def ensure_user(session: AsyncSession, customer: Customer, display_name: str | None) -> str:
    """
    Owning user id for the order.

    Authenticated users get a row if the auth side never created one;
    guests are matched by email and created on first checkout.
    """
    if customer.user_id is not None:
        if await session.get(UserRow, customer.user_id) is None:
            session.add(UserRow(
                id=customer.user_id,
                email=customer.email.lower(),
                name=customer.name,
                is_guest=customer.is_guest,
            ))
            await session.flush()
        return customer.user_id

    email = customer.email.lower()
    existing = await session.scalar(select(UserRow.id).where(UserRow.email == email))
    if existing is not None:
        return existing

    row = UserRow(email=email, name=customer.name or display_name, is_guest=True)
    session.add(row)
    await session.flush()
    return row.id


async def ensure_address(session: AsyncSession, user_id: str, address: ShippingAddress) -> str:
    """Reuse on (full_name, address_line1, city, postal_code), else insert."""
    existing = await session.scalar(
        select(AddressRow.id)
        .where(
            AddressRow.user_id == user_id,
            AddressRow.full_name == address.full_name,
            AddressRow.address_line1 == address.address_line1,
            AddressRow.city == address.city,
            AddressRow.postal_code == address.postal_code,
        )
        .limit(1)
    )
    if existing is not None:
        return existing

    row = AddressRow(
        user_id=user_id,
        name="Shipping Address",
        full_name=address.full_name,
        address_line1=address.address_line1,
        address_line2=address.address_line2,
        city=address.city,
        state=address.state,
        postal_code=address.postal_code,
        country=address.country,
        phone=address.phone,
    )
    session.add(row)
    await session.flush()
    return row.id


__all__ = ("UserDirectory", "ensure_user", "ensure_address")
