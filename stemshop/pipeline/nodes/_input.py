"""
Input — entry points to the graph.
"""

from stemshop.domain import CheckoutRequest
from stemshop.pipeline._deps import CheckoutDeps
from stemshop.pipeline._graph import node


@node
class RequestNode:
    """Entry point: wraps the decoded CheckoutRequest."""

    def __init__(self, data: CheckoutRequest) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, request: CheckoutRequest) -> "RequestNode":
        return cls(request)


@node
class DepsNode:
    """Entry point: stores, services and config for this checkout."""

    def __init__(self, data: CheckoutDeps) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, deps: CheckoutDeps) -> "DepsNode":
        return cls(deps)


__all__ = ("RequestNode", "DepsNode")
