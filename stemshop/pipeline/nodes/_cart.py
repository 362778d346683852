"""
Cart — catalog resolution of the client's lines.
"""

import structlog

from stemshop.catalog import resolve_lines
from stemshop.domain import LineManifest
from stemshop.errors import EmptyOrderError, InfrastructureError
from stemshop.pipeline._graph import node
from stemshop.pipeline.nodes._customer import CustomerNode
from stemshop.pipeline.nodes._input import DepsNode, RequestNode

logger = structlog.get_logger()


@node
class ResolvedCartNode:
    """
    Accepted and dropped lines.

    Runs after identity so an anonymous request never reaches the catalog.
    """

    def __init__(self, manifest: LineManifest) -> None:
        self.manifest = manifest

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        customer: CustomerNode,
        deps: DepsNode,
    ) -> "ResolvedCartNode":
        try:
            manifest = await resolve_lines(deps.data.catalog, request.data.items)
        except Exception as e:
            raise InfrastructureError("catalog unavailable", e) from e

        if manifest.is_empty:
            logger.info("cart_empty_after_resolution", dropped=len(manifest.rejected))
            raise EmptyOrderError()
        return cls(manifest)


__all__ = ("ResolvedCartNode",)
