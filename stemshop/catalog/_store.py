"""
Catalog store — product and book lookups.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemshop._types import Money
from stemshop.db import BookRow, ProductRow


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    id: str
    name: str
    price: Money
    is_active: bool


class CatalogStore(Protocol):
    """
    Batched lookups by id. Missing ids are absent from the result.

    Errors propagate: an unreachable catalog fails the checkout.
    """

    async def find_books(self, ids: Collection[str]) -> Mapping[str, CatalogEntry]:
        ...

    async def find_products(self, ids: Collection[str]) -> Mapping[str, CatalogEntry]:
        ...


class SqlCatalogStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_books(self, ids: Collection[str]) -> Mapping[str, CatalogEntry]:
        if not ids:
            return {}
        async with self._session_factory() as session:
            rows = await session.scalars(select(BookRow).where(BookRow.id.in_(list(ids))))
            return {
                row.id: CatalogEntry(row.id, row.name, row.price, row.is_active)
                for row in rows
            }

    async def find_products(self, ids: Collection[str]) -> Mapping[str, CatalogEntry]:
        if not ids:
            return {}
        async with self._session_factory() as session:
            rows = await session.scalars(select(ProductRow).where(ProductRow.id.in_(list(ids))))
            return {
                row.id: CatalogEntry(row.id, row.name, row.price, row.is_active)
                for row in rows
            }


__all__ = ("CatalogEntry", "CatalogStore", "SqlCatalogStore")
