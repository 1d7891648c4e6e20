"""Edges between graph nodes.

An `Edge` always fires when its source completes. A `ConditionalEdge` asks a
routing function for a label and looks the label up in its destination map;
labels outside the map, and routers that raise, fall back to `default` so a
run can never be routed into an undefined node.
"""

from typing import Any, Callable, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field

from relaygraph.core.graph.nodes import END
from relaygraph.core.graph.state import RunState
from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.GRAPH)


class Edge(BaseModel):
    """Unconditional edge from `source` to `target`."""
    model_config = ConfigDict(frozen=True)

    source: str
    target: str

    def targets(self) -> Tuple[str, ...]:
        return (self.target,)


class ConditionalEdge(BaseModel):
    """
    Edge whose target is computed from the post-merge state.

    Attributes:
        source: Node whose completion triggers routing
        router: Pure function `state -> label`
        destinations: Label to node name (or END)
        default: Target used for unknown labels and router errors
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: str
    router: Callable[[RunState], Any]
    destinations: Dict[str, str] = Field(default_factory=dict)
    default: str = END

    def targets(self) -> Tuple[str, ...]:
        """Every node this edge can route to, default included."""
        seen = dict.fromkeys([*self.destinations.values(), self.default])
        return tuple(seen)

    def resolve(self, state: RunState) -> str:
        """Route `state` to a target node name (or END)."""
        try:
            label = self.router(state)
        except Exception as e:
            logger.warning(
                f"Router for {self.source} raised {e!r}; routing to {self.default}"
            )
            return self.default

        target = self.destinations.get(label) if isinstance(label, str) else None
        if target is None:
            logger.warning(
                f"Router for {self.source} returned unknown label {label!r}; "
                f"routing to {self.default}"
            )
            return self.default
        return target
