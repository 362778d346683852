"""
Best-effort side effects.

Post-commit work (digital delivery, email) runs through run_best_effort:
bounded by a timeout, every exception turned into an EffectFailure, the
outcome logged. Callers inspect the Result; nothing is raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from combinators import lift as L
from kungfu import Error, Ok, Result

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class EffectFailure:
    effect: str
    reason: str
    timed_out: bool = False


def _describe(effect: str, e: Exception) -> EffectFailure:
    if isinstance(e, TimeoutError):
        return EffectFailure(effect, "timed out", timed_out=True)
    return EffectFailure(effect, f"{type(e).__name__}: {e}")


async def run_best_effort[T](
    effect: str,
    action: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    **context: Any,
) -> Result[T, EffectFailure]:
    async def bounded() -> T:
        return await asyncio.wait_for(action(), timeout)

    result = await L.catching_async(bounded, on_error=lambda e: _describe(effect, e))

    match result:
        case Ok(_):
            logger.info("effect_completed", effect=effect, **context)
        case Error(failure):
            logger.warning(
                f"{effect}_failed",
                reason=failure.reason,
                timed_out=failure.timed_out,
                **context,
            )
    return result


__all__ = ("EffectFailure", "run_best_effort")
