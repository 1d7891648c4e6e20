"""Declarative workflow shapes.

A `GraphShape` describes a workflow purely as data: which nodes exist, which
fields each one owns, and how they are wired. Binding the shape to concrete
node functions and routers produces a regular `Graph`, so no workflow ever
re-implements scheduling.

Example:
    ```python
    SHAPE = GraphShape(
        name="qa",
        nodes=[NodeSpec(name="answer", writes=["response"])],
        edges=[EdgeSpec(source=START, target="answer"),
               EdgeSpec(source="answer", target=END)],
    )
    graph = SHAPE.build(QAState, handlers={"answer": answer})
    ```
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, Field

from relaygraph.core.errors import GraphStructureError
from relaygraph.core.graph.base import Graph
from relaygraph.core.graph.nodes import END
from relaygraph.core.graph.state import RunState


class NodeSpec(BaseModel):
    """A node slot in a shape."""
    name: str
    writes: Optional[List[str]] = None
    description: str = ""


class EdgeSpec(BaseModel):
    """An unconditional edge in a shape."""
    source: str
    target: str


class BranchSpec(BaseModel):
    """A conditional edge; `router` names a routing function bound at build time."""
    source: str
    router: str
    destinations: Dict[str, str]
    default: str = END


class GraphShape(BaseModel):
    """Nodes, edges and branches of one workflow, without any behaviour."""
    name: str
    nodes: List[NodeSpec] = Field(default_factory=list)
    edges: List[EdgeSpec] = Field(default_factory=list)
    branches: List[BranchSpec] = Field(default_factory=list)

    def node_names(self) -> List[str]:
        return [node.name for node in self.nodes]

    def build(
        self,
        state_schema: Type[RunState],
        handlers: Mapping[str, Callable[..., Any]],
        routers: Optional[Mapping[str, Callable[[RunState], Any]]] = None
    ) -> Graph:
        """Bind the shape to node functions and routers.

        Args:
            state_schema: RunState subclass for the workflow
            handlers: Node name to node function
            routers: Router name to routing function

        Raises:
            GraphStructureError: When a node or router has no binding, or the
                wiring itself is invalid
        """
        routers = routers or {}
        missing = [name for name in self.node_names() if name not in handlers]
        missing += [
            f"router {branch.router}" for branch in self.branches
            if branch.router not in routers
        ]
        if missing:
            raise GraphStructureError(
                f"Shape {self.name} has unbound entries: {', '.join(missing)}",
                problems=[f"Unbound: {item}" for item in missing]
            )

        graph = Graph(state_schema=state_schema, name=self.name)
        for node in self.nodes:
            graph.add_node(node.name, handlers[node.name], writes=node.writes)
        for edge in self.edges:
            graph.add_edge(edge.source, edge.target)
        for branch in self.branches:
            graph.add_conditional_edge(
                branch.source,
                routers[branch.router],
                branch.destinations,
                default=branch.default
            )
        return graph
