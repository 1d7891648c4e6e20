"""Graph package initialization.

Exposes core graph components and helpers for building workflows.
"""

from relaygraph.core.graph.base import Graph, CompiledGraph
from relaygraph.core.graph.edges import Edge, ConditionalEdge
from relaygraph.core.graph.executor import Executor
from relaygraph.core.graph.nodes import Node, START, END, soft_failure
from relaygraph.core.graph.shape import GraphShape, NodeSpec, EdgeSpec, BranchSpec
from relaygraph.core.graph.state import (
    RunState,
    RunRecord,
    StepRecord,
    NodeStatus,
    initial_state,
    merge_update,
)
from relaygraph.core.graph.viz import GraphVisualizer

__all__ = [
    # Core classes
    "Graph",
    "CompiledGraph",
    "Executor",
    "Node",
    "Edge",
    "ConditionalEdge",
    "RunState",
    "RunRecord",
    "StepRecord",
    "NodeStatus",
    "GraphVisualizer",

    # Shapes
    "GraphShape",
    "NodeSpec",
    "EdgeSpec",
    "BranchSpec",

    # Markers and helpers
    "START",
    "END",
    "soft_failure",
    "initial_state",
    "merge_update",
]
