"""Graph Base Classes

This module defines the graph definition used to build workflows and the
compiled plan that runs them. A graph:
1. Registers named nodes that read a typed state and return partial updates
2. Connects them with unconditional edges or state-driven conditional edges
3. Validates its structure once, at compile time
4. Compiles into an immutable plan that any number of runs can share

Example:
    ```python
    class State(RunState):
        message: str = ""
        a: str = ""
        b: str = ""
        combined: str = ""

    graph = Graph(state_schema=State, name="fan")
    graph.add_node("a", node_a, writes={"a"})
    graph.add_node("b", node_b, writes={"b"})
    graph.add_node("join", join, writes={"combined"})

    graph.add_edge(START, "a")
    graph.add_edge(START, "b")
    graph.add_edge("a", "join")
    graph.add_edge("b", "join")
    graph.add_edge("join", END)

    plan = graph.compile()
    state = await plan.ainvoke({"message": "hi"})
    ```
"""

from collections import deque
from itertools import combinations
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

from relaygraph.core.errors import GraphStructureError, NodeRegistrationError
from relaygraph.core.graph.edges import ConditionalEdge, Edge
from relaygraph.core.graph.executor import Executor
from relaygraph.core.graph.nodes import END, RESERVED_NAMES, START, Node
from relaygraph.core.graph.state import RunRecord, RunState
from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.GRAPH)

DEFAULT_MAX_STEPS = 25


class Graph(BaseModel):
    """Mutable registry of nodes and edges for one workflow.

    Attributes:
        state_schema: RunState subclass declaring the run's fields
        name: Graph name used in logs and run records
        nodes: Node name to Node
        edges: Unconditional edges in registration order
        branches: Conditional edge by source node name
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    state_schema: Type[RunState]
    name: str = "graph"
    nodes: Dict[str, Node] = Field(default_factory=dict)
    edges: List[Edge] = Field(default_factory=list)
    branches: Dict[str, ConditionalEdge] = Field(default_factory=dict)

    def add_node(
        self,
        name: str,
        fn: Callable[..., Any],
        writes: Optional[Iterable[str]] = None,
        **metadata: Any
    ) -> Node:
        """Register a node.

        Args:
            name: Unique node name
            fn: Callable receiving the state snapshot
            writes: Optional set of fields the node owns
            **metadata: Stored on the node

        Raises:
            NodeRegistrationError: On a duplicate or reserved name, a
                non-callable fn, or outputs the state schema does not declare
        """
        if name in RESERVED_NAMES:
            raise NodeRegistrationError(f"Node name {name!r} is reserved")
        if name in self.nodes:
            raise NodeRegistrationError(f"Node already registered: {name}")
        if not callable(fn):
            raise NodeRegistrationError(f"Node {name} needs a callable, got {type(fn).__name__}")

        node = Node(name=name, fn=fn, writes=writes, metadata=metadata)
        if node.writes is not None:
            unknown = node.writes - self.state_schema.field_names()
            if unknown:
                raise NodeRegistrationError(
                    f"Node {name} declares outputs {sorted(unknown)} "
                    f"missing from {self.state_schema.__name__}"
                )

        self.nodes[name] = node
        logger.debug(f"Added node: {name}")
        return node

    def _check_source(self, source: str) -> None:
        if source == END:
            raise GraphStructureError("END cannot have outgoing edges")
        if source != START and source not in self.nodes:
            raise GraphStructureError(f"Source node not found: {source}")

    def _check_target(self, source: str, target: str) -> None:
        if target == START:
            raise GraphStructureError(f"Edge {source} -> START is not allowed")
        if target != END and target not in self.nodes:
            raise GraphStructureError(f"Target node not found: {target} (from {source})")

    def add_edge(self, source: str, target: str) -> None:
        """Add an unconditional edge.

        Raises:
            GraphStructureError: If either endpoint is unknown or the edge exists
        """
        self._check_source(source)
        self._check_target(source, target)
        edge = Edge(source=source, target=target)
        if edge in self.edges:
            raise GraphStructureError(f"Duplicate edge: {source} -> {target}")
        self.edges.append(edge)
        logger.debug(f"Added edge: {source} --> {target}")

    def add_conditional_edge(
        self,
        source: str,
        router: Callable[[RunState], Any],
        destinations: Mapping[str, str],
        default: str = END
    ) -> None:
        """Add a state-driven edge.

        Args:
            source: Node whose completion triggers routing
            router: Pure function `state -> label`
            destinations: Label to node name (or END)
            default: Target for labels outside `destinations`

        Raises:
            GraphStructureError: On unknown endpoints or a second conditional
                edge for the same source
        """
        self._check_source(source)
        if not callable(router):
            raise GraphStructureError(f"Router for {source} is not callable")
        if source in self.branches:
            raise GraphStructureError(f"Node {source} already has a conditional edge")
        for target in [*destinations.values(), default]:
            self._check_target(source, target)

        self.branches[source] = ConditionalEdge(
            source=source,
            router=router,
            destinations=dict(destinations),
            default=default
        )
        logger.debug(
            f"Added conditional edge: {source} --[{', '.join(destinations)}]--> "
            f"{sorted(set(destinations.values()))} (default {default})"
        )

    def chain(self, names: List[str]) -> None:
        """Connect registered nodes START -> names[0] -> ... -> names[-1] -> END."""
        if not names:
            raise GraphStructureError("Cannot chain an empty node list")
        path = [START, *names, END]
        for source, target in zip(path, path[1:]):
            self.add_edge(source, target)

    def successors(self, source: str) -> List[str]:
        """Every possible target of `source`, static edges first."""
        targets = [edge.target for edge in self.edges if edge.source == source]
        if source in self.branches:
            targets.extend(self.branches[source].targets())
        return list(dict.fromkeys(targets))

    def _reachable_from_start(self) -> Set[str]:
        seen: Set[str] = set()
        queue = deque([START])
        while queue:
            current = queue.popleft()
            for target in self.successors(current):
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        return seen

    def _can_reach_end(self) -> Set[str]:
        predecessors: Dict[str, Set[str]] = {}
        for source in [START, *self.nodes]:
            for target in self.successors(source):
                predecessors.setdefault(target, set()).add(source)

        seen = {END}
        queue = deque([END])
        while queue:
            current = queue.popleft()
            for source in predecessors.get(current, ()):
                if source not in seen:
                    seen.add(source)
                    queue.append(source)
        return seen

    def validate(self) -> List[str]:
        """Validate the graph structure.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors: List[str] = []

        if not self.nodes:
            errors.append("Graph has no nodes")
            return errors

        if not self.successors(START):
            errors.append("START has no outgoing edge")

        reachable = self._reachable_from_start()
        finishing = self._can_reach_end()

        for name in self.nodes:
            if name not in reachable:
                errors.append(f"Node {name} is not reachable from START")
                continue
            if not self.successors(name):
                errors.append(f"Node {name} has no outgoing edge")
            elif name not in finishing:
                errors.append(f"Node {name} has no path to END")

        for source in [START, *self.nodes]:
            siblings = [
                self.nodes[edge.target] for edge in self.edges
                if edge.source == source and edge.target != END
            ]
            for left, right in combinations(siblings, 2):
                if left.writes and right.writes and left.writes & right.writes:
                    errors.append(
                        f"Fan-out siblings {left.name} and {right.name} (from {source}) "
                        f"both write {sorted(left.writes & right.writes)}"
                    )

        return errors

    def compile(self, max_steps: Optional[int] = None) -> "CompiledGraph":
        """Validate the graph and freeze it into an executable plan.

        Raises:
            GraphStructureError: Listing every validation problem
        """
        errors = self.validate()
        if errors:
            logger.error(f"Graph {self.name} failed validation: {errors}")
            raise GraphStructureError(
                f"Graph {self.name} is invalid: " + "; ".join(errors),
                problems=errors
            )

        static: Dict[str, Tuple[str, ...]] = {}
        for source in [START, *self.nodes]:
            static[source] = tuple(
                edge.target for edge in self.edges if edge.source == source
            )

        predecessors: Dict[str, FrozenSet[str]] = {
            name: frozenset(
                edge.source for edge in self.edges if edge.target == name
            )
            for name in self.nodes
        }

        plan = CompiledGraph(
            name=self.name,
            state_schema=self.state_schema,
            nodes=dict(self.nodes),
            static_edges=static,
            branches=dict(self.branches),
            predecessors=predecessors,
            max_steps=max_steps or DEFAULT_MAX_STEPS
        )
        logger.info(
            f"Compiled graph {self.name}: {len(self.nodes)} nodes, "
            f"{len(self.edges)} edges, {len(self.branches)} conditional"
        )
        return plan


class CompiledGraph(BaseModel):
    """Immutable execution plan produced by `Graph.compile()`.

    Holds no per-run state, so one plan serves any number of concurrent runs.

    Attributes:
        static_edges: Unconditional targets by source (START included)
        branches: Conditional edge by source
        predecessors: Static predecessors each node waits for before running
        max_steps: Node executions allowed per run
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    state_schema: Type[RunState]
    nodes: Dict[str, Node]
    static_edges: Dict[str, Tuple[str, ...]]
    branches: Dict[str, ConditionalEdge]
    predecessors: Dict[str, FrozenSet[str]]
    max_steps: int = DEFAULT_MAX_STEPS

    def next_targets(self, source: str, state: RunState) -> List[Tuple[str, bool]]:
        """Targets fired when `source` completes, as (name, conditional) pairs."""
        fired = [(target, False) for target in self.static_edges.get(source, ())]
        branch = self.branches.get(source)
        if branch is not None:
            fired.append((branch.resolve(state), True))
        return fired

    async def run(
        self,
        values: Optional[Mapping[str, Any]] = None,
        max_steps: Optional[int] = None
    ) -> RunRecord:
        """Execute the plan and return the full run record."""
        executor = Executor(self, max_steps=max_steps or self.max_steps)
        return await executor.run(values)

    async def ainvoke(
        self,
        values: Optional[Mapping[str, Any]] = None,
        max_steps: Optional[int] = None
    ) -> RunState:
        """Execute the plan and return the final state."""
        record = await self.run(values, max_steps=max_steps)
        return record.state
