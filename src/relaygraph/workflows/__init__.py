"""Workflows built on the relaygraph engine."""

from relaygraph.workflows.comparison import (
    COMPARISON_SHAPE,
    ComparisonState,
    build_comparison_graph,
    comparison_graph_from_settings,
)
from relaygraph.workflows.conversation import (
    CONVERSATION_SHAPE,
    ConversationState,
    build_conversation_graph,
    conversation_graph_from_settings,
    take_turn,
)
from relaygraph.workflows.multi_agent import (
    MULTI_AGENT_SHAPE,
    MultiAgentState,
    FilesystemAgent,
    OrchestratorAgent,
    WebAgent,
    build_multi_agent_graph,
    multi_agent_graph_from_settings,
)
from relaygraph.workflows.retrieval import (
    RETRIEVAL_SHAPE,
    RetrievalState,
    build_retrieval_graph,
    retrieval_graph_from_settings,
)

__all__ = [
    "COMPARISON_SHAPE",
    "ComparisonState",
    "build_comparison_graph",
    "comparison_graph_from_settings",
    "CONVERSATION_SHAPE",
    "ConversationState",
    "build_conversation_graph",
    "conversation_graph_from_settings",
    "take_turn",
    "MULTI_AGENT_SHAPE",
    "MultiAgentState",
    "FilesystemAgent",
    "OrchestratorAgent",
    "WebAgent",
    "build_multi_agent_graph",
    "multi_agent_graph_from_settings",
    "RETRIEVAL_SHAPE",
    "RetrievalState",
    "build_retrieval_graph",
    "retrieval_graph_from_settings",
]
