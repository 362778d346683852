"""
Order — write, then best-effort effects, then the receipt.

OrderNode is the only node that writes. Fulfillment and notification run
after commit through run_best_effort and never raise; a replayed order
(same payment intent) skips both.
"""

import structlog
from kungfu import Error, Ok, Result

from stemshop.domain import CheckoutReceipt, PlacedOrder
from stemshop.effects import EffectFailure, EmailMessage, FulfillmentOutcome, run_best_effort
from stemshop.pipeline._graph import node
from stemshop.pipeline.nodes._input import DepsNode, RequestNode
from stemshop.pipeline.nodes._pricing import QuoteNode

logger = structlog.get_logger()


@node
class OrderNode:
    def __init__(self, data: PlacedOrder) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        quote: QuoteNode,
        deps: DepsNode,
    ) -> "OrderNode":
        placed = await deps.data.writer.write(request.data, quote.data)
        return cls(placed)


@node
class FulfillmentNode:
    """Digital delivery hand-off. None when skipped."""

    def __init__(self, result: Result[FulfillmentOutcome, EffectFailure] | None) -> None:
        self.result = result

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        order: OrderNode,
        deps: DepsNode,
    ) -> "FulfillmentNode":
        placed = order.data
        if placed.replayed:
            return cls(None)

        result = await run_best_effort(
            "digital_fulfillment",
            lambda: deps.data.fulfillment(placed.order_id, request.data.items),
            timeout=deps.data.config.effect_timeout_seconds,
            order_id=placed.order_id,
        )
        return cls(result)


@node
class NotificationNode:
    """Confirmation email, sent after the fulfillment attempt. None when skipped."""

    def __init__(self, result: Result[EmailMessage, EffectFailure] | None) -> None:
        self.result = result

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        quote: QuoteNode,
        order: OrderNode,
        fulfillment: FulfillmentNode,
        deps: DepsNode,
    ) -> "NotificationNode":
        placed = order.data
        if placed.replayed:
            return cls(None)

        result = await run_best_effort(
            "order_confirmation_email",
            lambda: deps.data.notifications(placed, request.data, quote.data),
            timeout=deps.data.config.effect_timeout_seconds,
            order_id=placed.order_id,
        )
        return cls(result)


@node
class ReceiptNode:
    """Final node: order plus line manifest plus which effects failed."""

    def __init__(self, data: CheckoutReceipt) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        order: OrderNode,
        quote: QuoteNode,
        fulfillment: FulfillmentNode,
        notification: NotificationNode,
    ) -> "ReceiptNode":
        failed: list[str] = []
        for result in (fulfillment.result, notification.result):
            match result:
                case Error(failure):
                    failed.append(failure.effect)
                case Ok(_) | None:
                    pass

        return cls(CheckoutReceipt(
            order=order.data,
            manifest=quote.data.manifest,
            failed_effects=tuple(failed),
        ))


__all__ = ("OrderNode", "FulfillmentNode", "NotificationNode", "ReceiptNode")
