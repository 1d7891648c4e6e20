"""Exception hierarchy for relaygraph.

Structural problems surface while a graph is being built or compiled. Anything
raised while a run is in progress is a hard run failure; nodes that want the run
to keep going convert their own errors into placeholder updates instead (see
`relaygraph.core.graph.nodes.soft_failure`).
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from relaygraph.core.graph.state import RunRecord


class RelayGraphError(Exception):
    """Base class for every error raised by relaygraph."""


class GraphStructureError(RelayGraphError):
    """A graph definition is malformed.

    Attributes:
        problems: Every structural problem found, one message each
    """

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        self.problems = list(problems or [message])
        super().__init__(message)


class NodeRegistrationError(GraphStructureError):
    """A node could not be registered (duplicate or reserved name, bad callable)."""


class StateUpdateError(RelayGraphError):
    """A partial update named a field the state schema does not declare."""


class NodeExecutionError(RelayGraphError):
    """A node returned something the executor cannot merge."""


class GraphRunError(RelayGraphError):
    """A run aborted because an exception escaped a node.

    Attributes:
        node: Name of the failing node, if the failure is tied to one
        record: The run record up to the failure
    """

    def __init__(
        self,
        message: str,
        node: Optional[str] = None,
        record: Optional["RunRecord"] = None
    ):
        self.node = node
        self.record = record
        super().__init__(message)


class RecursionLimitError(GraphRunError):
    """A run executed more node steps than its plan allows."""


class StructuredOutputUnsupported(RelayGraphError):
    """The model client cannot produce schema-constrained output."""
