"""
Checkout nodes.

- _input.py    — RequestNode, DepsNode (entry points)
- _customer.py — CustomerNode (session user or guest)
- _cart.py     — ResolvedCartNode (catalog resolution, line manifest)
- _pricing.py  — StoreSettingsNode, SubtotalNode, CouponNode, PricingNode, QuoteNode
- _order.py    — OrderNode (transaction), FulfillmentNode, NotificationNode, ReceiptNode

QuoteNode and ReceiptNode are both targets: a quote is the same graph
stopped before anything is written.
"""

from stemshop.pipeline.nodes._input import RequestNode, DepsNode
from stemshop.pipeline.nodes._customer import CustomerNode
from stemshop.pipeline.nodes._cart import ResolvedCartNode
from stemshop.pipeline.nodes._pricing import (
    StoreSettingsNode,
    SubtotalNode,
    CouponNode,
    PricingNode,
    QuoteNode,
)
from stemshop.pipeline.nodes._order import (
    OrderNode,
    FulfillmentNode,
    NotificationNode,
    ReceiptNode,
)

__all__ = (
    "RequestNode",
    "DepsNode",
    "CustomerNode",
    "ResolvedCartNode",
    "StoreSettingsNode",
    "SubtotalNode",
    "CouponNode",
    "PricingNode",
    "QuoteNode",
    "OrderNode",
    "FulfillmentNode",
    "NotificationNode",
    "ReceiptNode",
)
