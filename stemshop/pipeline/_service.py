"""
Checkout service — the Result-returning entry point.

    service = CheckoutService(deps)

    match await service.place_order(request):
        case Ok(receipt):
            ...
        case Error(err):
            ...  # err is always a CheckoutError
"""

from __future__ import annotations

import time

import structlog
from kungfu import Error, Ok, Result

from stemshop.domain import CheckoutReceipt, CheckoutRequest, Quote
from stemshop.errors import CheckoutError, InfrastructureError
from stemshop.pipeline._deps import CheckoutDeps
from stemshop.pipeline._graph import Pipeline, pipeline
from stemshop.pipeline.nodes import QuoteNode, ReceiptNode

logger = structlog.get_logger()


def checkout_error_from(exc: BaseException) -> CheckoutError | None:
    """First CheckoutError in exc, its exception groups, or its cause chain."""
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, CheckoutError):
            return current
        if isinstance(current, BaseExceptionGroup):
            pending.extend(current.exceptions)
        for linked in (current.__cause__, current.__context__):
            if linked is not None:
                pending.append(linked)
    return None


class CheckoutService:
    """Graphs are compiled once per service."""

    def __init__(self, deps: CheckoutDeps) -> None:
        self._deps = deps
        self._place_order: Pipeline[ReceiptNode] = pipeline(ReceiptNode)
        self._quote: Pipeline[QuoteNode] = pipeline(QuoteNode)

    @property
    def deps(self) -> CheckoutDeps:
        return self._deps

    async def place_order(self, request: CheckoutRequest) -> Result[CheckoutReceipt, CheckoutError]:
        start = time.perf_counter()
        try:
            result = await self._place_order(request, self._deps)
        except Exception as e:
            return self._failed("place_order", e, start)

        receipt = result.data
        logger.info(
            "checkout_completed",
            order_id=receipt.order_id,
            order_number=receipt.order_number,
            replayed=receipt.order.replayed,
            accepted=len(receipt.manifest.accepted),
            rejected=len(receipt.manifest.rejected),
            failed_effects=list(receipt.failed_effects),
            elapsed_ms=round((time.perf_counter() - start) * 1000),
        )
        return Ok(receipt)

    async def quote(self, request: CheckoutRequest) -> Result[Quote, CheckoutError]:
        start = time.perf_counter()
        try:
            result = await self._quote(request, self._deps)
        except Exception as e:
            return self._failed("quote", e, start)
        return Ok(result.data)

    def _failed(self, operation: str, exc: Exception, start: float) -> Error[CheckoutError]:
        elapsed_ms = round((time.perf_counter() - start) * 1000)
        error = checkout_error_from(exc)
        if error is None:
            error = InfrastructureError(f"{operation} failed: {exc!r}", exc)

        if isinstance(error, InfrastructureError):
            logger.error(
                "checkout_failed",
                operation=operation,
                code=error.code,
                error=error.message,
                cause=repr(error.cause),
                elapsed_ms=elapsed_ms,
            )
        else:
            logger.info(
                "checkout_rejected",
                operation=operation,
                code=error.code,
                error=error.message,
                elapsed_ms=elapsed_ms,
            )
        return Error(error)


__all__ = ("CheckoutService", "checkout_error_from")
