"""Graph visualization tools."""

from typing import List

from relaygraph.core.graph.base import CompiledGraph
from relaygraph.core.graph.nodes import END, START
from relaygraph.core.graph.state import RunRecord


def _mermaid_id(name: str) -> str:
    if name == START:
        return "start"
    if name == END:
        return "end"
    return "n_" + "".join(ch if ch.isalnum() else "_" for ch in name)


class GraphVisualizer:
    """Render graph structure and execution as text."""

    def render_graph(self, plan: CompiledGraph) -> str:
        """Mermaid flowchart of the plan; conditional edges are dashed and labelled."""
        lines: List[str] = ["flowchart TD"]
        lines.append(f"    {_mermaid_id(START)}([START])")
        for name in plan.nodes:
            lines.append(f"    {_mermaid_id(name)}[{name}]")
        lines.append(f"    {_mermaid_id(END)}([END])")

        for source, targets in plan.static_edges.items():
            for target in targets:
                lines.append(f"    {_mermaid_id(source)} --> {_mermaid_id(target)}")

        for source, branch in plan.branches.items():
            for label, target in branch.destinations.items():
                lines.append(
                    f"    {_mermaid_id(source)} -.->|{label}| {_mermaid_id(target)}"
                )
            if branch.default not in branch.destinations.values():
                lines.append(
                    f"    {_mermaid_id(source)} -.->|default| {_mermaid_id(branch.default)}"
                )
        return "\n".join(lines)

    def render_execution(self, record: RunRecord) -> str:
        """One line per step: index, node, status, duration and fields written."""
        lines = [f"{record.graph}: {record.status.value}"]
        for index, step in enumerate(record.steps, start=1):
            duration = f"{step.duration:.3f}s" if step.duration is not None else "-"
            detail = step.error or ", ".join(step.written) or "no update"
            lines.append(
                f"  {index:>2}. {step.node:<20} {step.status.value:<10} {duration:>8}  {detail}"
            )
        return "\n".join(lines)
