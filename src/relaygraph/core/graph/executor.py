"""Executor for compiled graphs.

Runs a plan from START until nothing is ready or in flight:

- The successors of START form the first ready set.
- A node fed by several unconditional edges (a fan-in) waits until every one
  of those predecessors has completed since the node last ran. A node reached
  through a conditional edge runs as soon as it is routed to.
- Every ready node is launched as its own asyncio task against the state
  snapshot current at dispatch time, so fan-out siblings never see each
  other's in-flight updates.
- When a task completes, its partial update is merged (the only point where
  shared state changes) and its outgoing edges are evaluated on the merged
  state. END is never dispatched.
- An exception escaping a node cancels the remaining tasks and aborts the run
  with `GraphRunError`.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Set, TYPE_CHECKING

from relaygraph.core.errors import GraphRunError, RecursionLimitError, RelayGraphError
from relaygraph.core.graph.nodes import END, START
from relaygraph.core.graph.state import (
    NodeStatus,
    RunRecord,
    RunState,
    StepRecord,
    initial_state,
    merge_update,
)
from relaygraph.core.logging import get_logger, log_state, LogComponent

if TYPE_CHECKING:
    from relaygraph.core.graph.base import CompiledGraph

logger = get_logger(LogComponent.EXECUTOR)


class Executor:
    """Runs one compiled plan; a fresh executor is used for every run."""

    def __init__(self, plan: "CompiledGraph", max_steps: int) -> None:
        self.plan = plan
        self.max_steps = max_steps

    async def run(self, values: Optional[Mapping[str, Any]] = None) -> RunRecord:
        """Execute the plan from START.

        Returns:
            The run record; `record.state` is the final state

        Raises:
            StateUpdateError: If `values` names undeclared fields
            GraphRunError: If a node raises or the run stalls
            RecursionLimitError: If more than `max_steps` nodes execute
        """
        plan = self.plan
        state: RunState = initial_state(plan.state_schema, values)
        record = RunRecord(graph=plan.name, state=state)
        logger.info(f"Starting run of {plan.name}")
        log_state(logger, state.as_dict(), prefix="  ")

        waiting: Dict[str, Set[str]] = {}
        ready: list = []
        in_flight: Dict[asyncio.Task, StepRecord] = {}

        def fire(source: str, current: RunState) -> None:
            for target, conditional in plan.next_targets(source, current):
                if target == END:
                    logger.debug(f"{source} --> END")
                    continue
                required = plan.predecessors.get(target, frozenset())
                if conditional or len(required) <= 1:
                    logger.debug(f"{source} --> {target}")
                    ready.append(target)
                    continue
                satisfied = waiting.setdefault(target, set())
                satisfied.add(source)
                if satisfied >= required:
                    del waiting[target]
                    logger.debug(f"{source} --> {target} (fan-in complete)")
                    ready.append(target)
                else:
                    logger.debug(
                        f"{source} --> {target} waiting on "
                        f"{sorted(required - satisfied)}"
                    )

        fire(START, state)

        try:
            while ready or in_flight:
                for name in dict.fromkeys(ready):
                    if len(record.steps) >= self.max_steps:
                        raise RecursionLimitError(
                            f"Run of {plan.name} exceeded {self.max_steps} steps "
                            f"(next node: {name})",
                            node=name,
                            record=record
                        )
                    step = record.start_step(name)
                    task = asyncio.create_task(
                        plan.nodes[name].execute(state),
                        name=f"{plan.name}:{name}"
                    )
                    in_flight[task] = step
                    logger.info(f"Dispatched node: {name}")
                ready.clear()

                if not in_flight:
                    break

                done, _ = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )
                # Tasks finishing together merge in dispatch order
                for task in [t for t in in_flight if t in done]:
                    step = in_flight.pop(task)
                    try:
                        update = task.result()
                        state = merge_update(state, update, origin=f"Node {step.node}")
                    except Exception as e:
                        step.status = NodeStatus.ERROR
                        step.error = str(e)
                        step.completed_at = datetime.utcnow()
                        logger.error(f"Error in node {step.node}: {e}")
                        if isinstance(e, RelayGraphError):
                            message = f"Node {step.node} failed: {e}"
                        else:
                            message = f"Node {step.node} raised {type(e).__name__}: {e}"
                        raise GraphRunError(message, node=step.node, record=record) from e

                    step.status = NodeStatus.COMPLETED
                    step.written = sorted(update)
                    step.completed_at = datetime.utcnow()
                    record.state = state
                    logger.info(
                        f"Completed node: {step.node} "
                        f"(wrote {', '.join(step.written) or 'nothing'})"
                    )
                    fire(step.node, state)
        except GraphRunError:
            await self._cancel(in_flight)
            record.finish(NodeStatus.ERROR)
            raise
        except BaseException:
            await self._cancel(in_flight)
            record.finish(NodeStatus.CANCELLED)
            raise

        if waiting:
            record.finish(NodeStatus.ERROR)
            stalled = ", ".join(
                f"{name} (missing {sorted(plan.predecessors[name] - got)})"
                for name, got in waiting.items()
            )
            raise GraphRunError(
                f"Run of {plan.name} stalled with fan-in nodes waiting: {stalled}",
                record=record
            )

        record.state = state
        record.finish(NodeStatus.COMPLETED)
        logger.info(f"Finished run of {plan.name} after {len(record.steps)} steps")
        return record

    @staticmethod
    async def _cancel(in_flight: Dict[asyncio.Task, StepRecord]) -> None:
        """Cancel unfinished sibling tasks and wait for them to unwind."""
        for task, step in in_flight.items():
            task.cancel()
            step.status = NodeStatus.CANCELLED
            step.completed_at = datetime.utcnow()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)
        in_flight.clear()
