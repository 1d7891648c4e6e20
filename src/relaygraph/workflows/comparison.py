"""Parallel model comparison.

Three models answer the same message concurrently; an evaluator model then
picks the best answer. The reply returned to the user is always the selected
branch's own output, never text the evaluator copied.

    START --> gpt4_agent ------\
    START --> o3_mini_agent ----> aggregator --> END
    START --> gpt4o_mini_agent /
"""

import re
from typing import Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from relaygraph.core.agent.client import ModelClient, ModelFactory, default_model_factory
from relaygraph.core.agent.messages import ChatMessage
from relaygraph.core.config import RelaySettings
from relaygraph.core.errors import GraphStructureError, StructuredOutputUnsupported
from relaygraph.core.graph import (
    CompiledGraph,
    EdgeSpec,
    GraphShape,
    NodeSpec,
    RunState,
    START,
    END,
    soft_failure,
)
from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.WORKFLOW)

PROCESSED_BY = "Graph fan-out/fan-in pattern (3 different OpenAI models)"
FALLBACK_AGENT = "GPT-4 (Fallback)"
PARSE_FAILURE_REASONING = "Evaluation parsing failed, defaulted to GPT-4 response"
EVALUATOR_FAILURE_REASONING = "Aggregator evaluation failed, using GPT-4 as fallback"
NO_RESPONSE = "All agents failed to respond"


class Branch(BaseModel):
    """One competing model: selection key, display label, node and output field."""
    key: str
    label: str
    node: str
    field: str
    system_prompt: str

    @property
    def error_text(self) -> str:
        return f"{self.label} Agent encountered an error processing your request."


BRANCHES: List[Branch] = [
    Branch(
        key="A",
        label="GPT-4",
        node="gpt4_agent",
        field="gpt4_response",
        system_prompt=(
            "You are a creative and comprehensive AI assistant powered by GPT-4. "
            "Provide detailed, thoughtful responses with rich context and creative "
            "insights. Focus on depth and nuanced understanding."
        ),
    ),
    Branch(
        key="B",
        label="GPT-o3-mini",
        node="o3_mini_agent",
        field="o3_mini_response",
        system_prompt=(
            "You are an efficient and balanced AI assistant powered by GPT-o3-mini. "
            "Provide clear, well-structured responses that are concise yet informative. "
            "Focus on practical and actionable insights."
        ),
    ),
    Branch(
        key="C",
        label="GPT-4o-Mini",
        node="gpt4o_mini_agent",
        field="gpt4o_mini_response",
        system_prompt=(
            "You are a fast and precise AI assistant powered by GPT-4o-Mini. "
            "Provide quick, accurate, and concise responses. Focus on efficiency and "
            "direct answers while maintaining helpfulness."
        ),
    ),
]

EVALUATOR_SYSTEM_PROMPT = (
    "You are a precise AI response evaluator. Analyze the responses objectively and "
    "select the best one based on quality, relevance, and helpfulness."
)


class ComparisonState(RunState):
    message: str = ""
    gpt4_response: str = ""
    o3_mini_response: str = ""
    gpt4o_mini_response: str = ""
    final_response: str = ""
    selected_agent: str = ""
    reasoning: str = ""


COMPARISON_SHAPE = GraphShape(
    name="comparison",
    nodes=[
        *[NodeSpec(name=b.node, writes=[b.field], description=b.label) for b in BRANCHES],
        NodeSpec(
            name="aggregator",
            writes=["final_response", "selected_agent", "reasoning"],
            description="Evaluator",
        ),
    ],
    edges=[
        *[EdgeSpec(source=START, target=b.node) for b in BRANCHES],
        *[EdgeSpec(source=b.node, target="aggregator") for b in BRANCHES],
        EdgeSpec(source="aggregator", target=END),
    ],
)


class Evaluation(BaseModel):
    """Evaluator verdict."""
    selected: Literal["A", "B", "C"] = Field(..., description="Key of the best response")
    reasoning: str = Field(..., description="Why this response is best")
    winning_response: str = Field(default="", description="Full text of the winning response")


_SELECTED = re.compile(r"SELECTED:\s*([ABC])")
_REASONING = re.compile(r"REASONING:\s*(.*?)(?=WINNING_RESPONSE:|$)", re.DOTALL)
_WINNING = re.compile(r"WINNING_RESPONSE:\s*(.*?)$", re.DOTALL)


def parse_evaluation(text: str) -> Optional[Evaluation]:
    """Parse the evaluator's SELECTED/REASONING/WINNING_RESPONSE text.

    Returns None unless all three sections are present.
    """
    selected = _SELECTED.search(text)
    reasoning = _REASONING.search(text)
    winning = _WINNING.search(text)
    if not (selected and reasoning and winning):
        return None
    return Evaluation(
        selected=selected.group(1),
        reasoning=reasoning.group(1).strip() or "No reasoning provided",
        winning_response=winning.group(1).strip() or "No response found",
    )


def build_evaluation_prompt(state: ComparisonState) -> str:
    responses = "\n\n".join(
        f"Response {b.key} ({b.label}): {getattr(state, b.field)}" for b in BRANCHES
    )
    keys = ", ".join(b.key for b in BRANCHES[:-1]) + f", or {BRANCHES[-1].key}"
    return f"""
You are an expert AI response evaluator. You need to analyze {len(BRANCHES)} different responses to the same user query and determine which one is the best.

User Query: "{state.message}"

{responses}

Evaluate each response based on:
1. Relevance to the user's query
2. Accuracy and factual correctness
3. Completeness and depth
4. Clarity and readability
5. Helpfulness and actionability

Choose the BEST response and provide your reasoning. Respond in this exact format:
SELECTED: [{keys}]
REASONING: [Your detailed reasoning for why this response is best]
WINNING_RESPONSE: [Copy the full text of the winning response]
"""


def make_branch_node(branch: Branch, client: ModelClient):
    """Single model call; failures become the branch's error text."""

    @soft_failure(**{branch.field: branch.error_text})
    async def branch_node(state: ComparisonState) -> Dict[str, str]:
        logger.agent(f"{branch.label} Agent: processing with {client.model}")
        return {branch.field: await client.ask(branch.system_prompt, state.message)}

    branch_node.__name__ = branch.node
    return branch_node


def make_aggregator(evaluator: ModelClient):
    """Evaluator node.

    Structured output is requested first; clients that cannot constrain output
    fall back to the line-format text and `parse_evaluation`. A verdict that
    cannot be parsed selects the first branch with a "(Fallback)" label, and so
    does any evaluator failure.
    """
    by_key = {b.key: b for b in BRANCHES}
    first = BRANCHES[0]

    async def evaluate(state: ComparisonState) -> Optional[Evaluation]:
        messages = [ChatMessage.user(build_evaluation_prompt(state))]
        try:
            return await evaluator.extract(EVALUATOR_SYSTEM_PROMPT, messages, Evaluation)
        except StructuredOutputUnsupported:
            reply = await evaluator.complete(EVALUATOR_SYSTEM_PROMPT, messages)
            return parse_evaluation(reply.content)

    async def aggregator(state: ComparisonState) -> Dict[str, str]:
        logger.agent("Aggregator: evaluating responses from all models")
        try:
            verdict = await evaluate(state)
        except Exception as e:
            logger.error(f"Aggregator evaluation failed: {e}")
            return {
                "final_response": getattr(state, first.field) or NO_RESPONSE,
                "selected_agent": FALLBACK_AGENT,
                "reasoning": EVALUATOR_FAILURE_REASONING,
            }

        if verdict is None:
            logger.warning("Evaluator output could not be parsed; using fallback branch")
            return {
                "final_response": getattr(state, first.field),
                "selected_agent": FALLBACK_AGENT,
                "reasoning": PARSE_FAILURE_REASONING,
            }

        winner = by_key[verdict.selected]
        logger.info(f"Aggregator selected {winner.key} ({winner.label})")
        return {
            "final_response": getattr(state, winner.field),
            "selected_agent": winner.label,
            "reasoning": verdict.reasoning,
        }

    return aggregator


def build_comparison_graph(
    branches: Mapping[str, ModelClient],
    evaluator: ModelClient,
    max_steps: Optional[int] = None
) -> CompiledGraph:
    """Compile the comparison workflow.

    Args:
        branches: Model client per branch key ("A", "B", "C")
        evaluator: Model client for the aggregator

    Raises:
        GraphStructureError: If a branch key has no client
    """
    missing = [b.key for b in BRANCHES if b.key not in branches]
    if missing:
        raise GraphStructureError(
            f"No model client for comparison branch(es) {missing}",
            problems=[f"Unbound branch: {key}" for key in missing]
        )

    handlers = {b.node: make_branch_node(b, branches[b.key]) for b in BRANCHES}
    handlers["aggregator"] = make_aggregator(evaluator)
    return COMPARISON_SHAPE.build(ComparisonState, handlers).compile(max_steps=max_steps)


def comparison_graph_from_settings(
    settings: RelaySettings,
    models: ModelFactory = default_model_factory
) -> CompiledGraph:
    return build_comparison_graph(
        {key: models(model) for key, model in settings.comparison_models.items()},
        models(settings.evaluator),
        max_steps=settings.max_steps,
    )


def all_responses(state: ComparisonState) -> Dict[str, str]:
    """Every branch output keyed by the names the HTTP API exposes."""
    return {
        "gpt4": state.gpt4_response,
        "gpt03Mini": state.o3_mini_response,
        "gpt4Mini": state.gpt4o_mini_response,
    }
