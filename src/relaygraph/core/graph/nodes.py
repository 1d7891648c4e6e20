"""Node abstraction for the graph system.

A Node is a named unit of work: an async function that receives the current
state snapshot and returns a partial update (a mapping of the fields it wants
to overwrite). From the executor's point of view a node is atomic; its update
is merged whole or, if it raises, not at all.

Typical Usage:
    ```python
    async def summarize(state: DocState) -> dict:
        return {"summary": state.text[:100]}

    graph.add_node("summarize", summarize, writes={"summary"})
    ```
"""

import inspect
from functools import wraps
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relaygraph.core.errors import NodeExecutionError
from relaygraph.core.graph.state import RunState
from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.NODES)

START = "__start__"
END = "__end__"

RESERVED_NAMES = frozenset({START, END})


def soft_failure(**placeholders: Any):
    """Decorator turning any exception in a node into a placeholder update.

    The wrapped node never raises; when its work fails the run continues with
    human-readable placeholder values for the fields the node owns.

    Example:
        @soft_failure(answer="Answer agent encountered an error processing your request.")
        async def answer(state):
            return {"answer": await model.complete(...)}
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Dict[str, Any]:
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as e:
                logger.error(f"Node {func.__name__} failed, using placeholder output: {e}")
                return dict(placeholders)
        return wrapper
    return decorator


class Node(BaseModel):
    """
    A registered unit of work.

    Attributes:
        name: Unique node name within its graph
        fn: Callable taking the state snapshot; may return an awaitable
        writes: Fields the node owns; None leaves the node unrestricted
        metadata: Free-form node metadata
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1, description="Unique name for this node")
    fn: Callable[..., Any]
    writes: Optional[FrozenSet[str]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("writes", mode="before")
    @classmethod
    def _freeze_writes(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            return frozenset({value})
        return frozenset(value)

    async def execute(self, state: RunState) -> Dict[str, Any]:
        """Run the node against a state snapshot and return its partial update."""
        result = self.fn(state)
        if inspect.isawaitable(result):
            result = await result

        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise NodeExecutionError(
                f"Node {self.name} returned {type(result).__name__}; "
                "expected a mapping of state fields"
            )

        update = dict(result)
        if self.writes is not None:
            foreign = set(update) - self.writes
            if foreign:
                raise NodeExecutionError(
                    f"Node {self.name} wrote field(s) {sorted(foreign)} "
                    f"outside its declared outputs {sorted(self.writes)}"
                )
        return update
