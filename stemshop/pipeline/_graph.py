"""
Graph runner — compile a node graph once, run it per checkout.

    place_order = pipeline(ReceiptNode)
    receipt = await place_order(request, deps)

Inputs are injected by their runtime type; nodnod discovers every node the
target depends on and runs independent ones concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node
from nodnod import scalar_node as node


# ═══════════════════════════════════════════════════════════════════════════════
# Pipeline: pre-compiled graph
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(slots=True, frozen=True)
class Pipeline[T]:
    """Compiled agent for one target node."""

    target: type[T]
    _agent: EventLoopAgent

    async def __call__(self, *inputs: object) -> T:
        scope = Scope(detail=self.target.__name__)
        async with scope:
            for value in inputs:
                scope.push(Value(type(value), value))

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(self._agent, "run"),
            )
            await run_method(scope, {})

            produced = scope.get(self.target)
            if produced is None:
                raise KeyError(f"{self.target.__name__} was not produced")
            return cast(T, produced.value)


def pipeline[T](target: type[T]) -> Pipeline[T]:
    """Compile the graph rooted at target."""
    all_nodes: set[type[Node[Any, Any]]] = {cast(type[Node[Any, Any]], target)}
    agent = EventLoopAgent.build(all_nodes)
    return Pipeline(target=target, _agent=agent)


__all__ = ("node", "Pipeline", "pipeline")
