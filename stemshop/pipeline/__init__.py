"""
Pipeline — the checkout as a computation graph.

    deps = CheckoutDeps.from_database(session_factory, ShopConfig())
    service = CheckoutService(deps)
    result = await service.place_order(request)

Request → customer → cart → subtotal → coupon → pricing → quote
        → order (transaction) → digital fulfillment → email → receipt

Store settings load concurrently with identity and catalog resolution.
"""

from stemshop.pipeline._graph import node, Pipeline, pipeline
from stemshop.pipeline._deps import CheckoutDeps
from stemshop.pipeline._service import CheckoutService, checkout_error_from

__all__ = (
    "node",
    "Pipeline",
    "pipeline",
    "CheckoutDeps",
    "CheckoutService",
    "checkout_error_from",
)
