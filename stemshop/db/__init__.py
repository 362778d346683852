"""
Database — SQLAlchemy async models and engine setup.

    from stemshop import db

    session_factory, engine = await db.create_database("sqlite+aiosqlite:///shop.db")
"""

from stemshop.db._models import (
    Base,
    new_id,
    UserRow,
    AddressRow,
    ProductRow,
    BookRow,
    CouponRow,
    CouponUsageRow,
    OrderRow,
    OrderItemRow,
    StoreSettingRow,
)
from stemshop.db._engine import create_database

__all__ = (
    "Base",
    "new_id",
    "UserRow",
    "AddressRow",
    "ProductRow",
    "BookRow",
    "CouponRow",
    "CouponUsageRow",
    "OrderRow",
    "OrderItemRow",
    "StoreSettingRow",
    "create_database",
)
