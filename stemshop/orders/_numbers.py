"""
Order numbers — ORD-<epoch millis>-<000..999>.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable

type OrderNumbers = Callable[[], str]


def order_number_factory(prefix: str = "ORD") -> OrderNumbers:
    def next_number() -> str:
        millis = time.time_ns() // 1_000_000
        return f"{prefix}-{millis}-{random.randint(0, 999):03d}"

    return next_number


__all__ = ("OrderNumbers", "order_number_factory")
