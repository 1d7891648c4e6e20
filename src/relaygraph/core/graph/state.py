"""State management for the graph system.

This module provides:
1. RunState: base class for a workflow's typed, immutable state container
2. initial_state / merge_update: building and advancing a run's state
3. NodeStatus, StepRecord, RunRecord: bookkeeping for one run

A workflow declares its fields once by subclassing `RunState`. Field defaults
are the values a run starts from; nodes never mutate the instance they are
given, they return a partial update that the executor merges into a fresh copy.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from relaygraph.core.errors import StateUpdateError

S = TypeVar("S", bound="RunState")


class RunState(BaseModel):
    """Base class for workflow state schemas.

    Example:
        ```python
        class QAState(RunState):
            message: str = ""
            response: str = ""
        ```
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @classmethod
    def field_names(cls) -> frozenset:
        """Names of every declared state field."""
        return frozenset(cls.model_fields)

    def as_dict(self) -> Dict[str, Any]:
        """Shallow field mapping; values are not copied or serialized."""
        return dict(self)


def _check_fields(schema: Type[RunState], keys, origin: str) -> None:
    unknown = set(keys) - schema.field_names()
    if unknown:
        raise StateUpdateError(
            f"{origin} sets undeclared field(s) {sorted(unknown)} "
            f"on {schema.__name__}"
        )


def initial_state(schema: Type[S], values: Optional[Mapping[str, Any]] = None) -> S:
    """Build a run's starting state from caller values over field defaults."""
    values = dict(values or {})
    _check_fields(schema, values, "Initial state")
    return schema.model_validate(values)


def merge_update(state: S, update: Mapping[str, Any], origin: str = "Update") -> S:
    """Overwrite the updated fields and return a new, validated state."""
    if not update:
        return state
    schema = type(state)
    _check_fields(schema, update, origin)
    return schema.model_validate({**state.as_dict(), **update})


class NodeStatus(str, Enum):
    """Node execution status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class StepRecord(BaseModel):
    """One node execution within a run."""
    node: str
    status: NodeStatus = NodeStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    written: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def duration(self) -> Optional[float]:
        """Seconds spent in the node, once it has finished."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class RunRecord(BaseModel):
    """Trace of one run: every step in dispatch order plus the latest state.

    Attributes:
        graph: Name of the compiled graph
        steps: Step records in dispatch order
        state: Latest merged state (final state once the run completes)
        status: COMPLETED on success, ERROR after a hard failure
        created_at: Time the run started
        finished_at: Time the run ended either way
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    graph: str
    steps: List[StepRecord] = Field(default_factory=list)
    state: Optional[RunState] = None
    status: NodeStatus = NodeStatus.RUNNING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    def start_step(self, node: str) -> StepRecord:
        """Append a running step for `node` and return it."""
        step = StepRecord(
            node=node,
            status=NodeStatus.RUNNING,
            started_at=datetime.utcnow()
        )
        self.steps.append(step)
        return step

    def finish(self, status: NodeStatus) -> None:
        """Mark the run finished with the given status."""
        self.status = status
        self.finished_at = datetime.utcnow()

    def visited(self) -> List[str]:
        """Node names in dispatch order."""
        return [step.node for step in self.steps]

    def errors(self) -> Dict[str, str]:
        """Error text by node name for failed steps."""
        return {
            step.node: step.error
            for step in self.steps
            if step.status == NodeStatus.ERROR and step.error
        }
