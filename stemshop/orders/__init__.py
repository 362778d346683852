"""
Orders — the write transaction and its helpers.

    writer = OrderWriter(session_factory)
    placed = await writer.write(request, quote)
"""

from stemshop.orders._numbers import OrderNumbers, order_number_factory
from stemshop.orders._customers import UserDirectory, ensure_user, ensure_address
from stemshop.orders._writer import OrderWriter, placed_from_row

__all__ = (
    "OrderNumbers",
    "order_number_factory",
    "UserDirectory",
    "ensure_user",
    "ensure_address",
    "OrderWriter",
    "placed_from_row",
)
