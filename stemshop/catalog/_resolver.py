"""
Catalog resolver — cart lines → PhysicalLine | DigitalLine.

The client's isBook flag is a hint. Unless it is explicitly true, the id is
probed in the book catalog first and only then in the product catalog.

Per line, in order:

1. book whose cart name carries "(Deleted)" → dropped (deleted)
2. unknown id                               → dropped (not_found)
3. inactive entry                           → dropped (inactive)
4. accepted

Dropping is not an error. Unit price comes from the catalog; the cart
line's display name is kept.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from stemshop.catalog._store import CatalogEntry, CatalogStore
from stemshop.domain import (
    CartLine,
    DigitalLine,
    LineManifest,
    PhysicalLine,
    RejectedLine,
    RejectReason,
    ResolvedLine,
)

logger = structlog.get_logger()

DELETED_MARKER = "(Deleted)"


def _reject(line: CartLine, reason: RejectReason) -> RejectedLine:
    logger.info(
        "cart_line_dropped",
        item_id=line.item_id,
        name=line.name,
        reason=str(reason),
    )
    return RejectedLine(item_id=line.item_id, name=line.name, reason=reason)


def _classify_book(line: CartLine, book: CatalogEntry | None) -> ResolvedLine | RejectedLine:
    if DELETED_MARKER in line.name:
        return _reject(line, RejectReason.DELETED)
    if book is None:
        return _reject(line, RejectReason.NOT_FOUND)
    if not book.is_active:
        return _reject(line, RejectReason.INACTIVE)
    return DigitalLine(
        book_id=book.id,
        name=line.name,
        unit_price=book.price,
        quantity=line.quantity,
        selected_language=line.selected_language,
    )


def _classify_product(line: CartLine, product: CatalogEntry | None) -> ResolvedLine | RejectedLine:
    if product is None:
        return _reject(line, RejectReason.NOT_FOUND)
    if not product.is_active:
        return _reject(line, RejectReason.INACTIVE)
    return PhysicalLine(
        product_id=product.id,
        name=line.name,
        unit_price=product.price,
        quantity=line.quantity,
    )


async def resolve_lines(store: CatalogStore, lines: Sequence[CartLine]) -> LineManifest:
    books = await store.find_books({line.item_id for line in lines})

    product_ids = {
        line.item_id
        for line in lines
        if line.is_book is not True and line.item_id not in books
    }
    products = await store.find_products(product_ids)

    accepted: list[ResolvedLine] = []
    rejected: list[RejectedLine] = []
    for line in lines:
        if line.is_book is True or line.item_id in books:
            outcome = _classify_book(line, books.get(line.item_id))
        else:
            outcome = _classify_product(line, products.get(line.item_id))

        if isinstance(outcome, RejectedLine):
            rejected.append(outcome)
        else:
            accepted.append(outcome)

    return LineManifest(accepted=tuple(accepted), rejected=tuple(rejected))


__all__ = ("DELETED_MARKER", "resolve_lines")
