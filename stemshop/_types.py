"""
Core types for stemshop.

Money and clock helpers shared by every layer.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from collections.abc import Callable

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Amount in store currency. Always quantized to cents before persisting."""

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value: Decimal | int | float | str) -> Money:
    """
    Quantize to cents, half-up.

        money("0.025") == Decimal("0.03")
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp. SQLite drops tzinfo, so everything stays naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Aliases
    "Money",
    "Clock",
    # Helpers
    "CENT",
    "ZERO",
    "money",
    "utcnow",
)
