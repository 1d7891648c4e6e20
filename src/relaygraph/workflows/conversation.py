"""Single-turn conversation with versioned history.

    START --> reply --> END

The reply node reads the thread's latest snapshot from the store as context.
Recording the new turn is left to the caller, which appends the user and
assistant messages once the run has produced a response.
"""

from typing import Any, Dict, Optional

from relaygraph.core.agent.client import ModelClient, ModelFactory, default_model_factory
from relaygraph.core.agent.messages import ChatMessage
from relaygraph.core.config import RelaySettings
from relaygraph.core.graph import CompiledGraph, EdgeSpec, GraphShape, NodeSpec, RunState, START, END
from relaygraph.core.logging import get_logger, LogComponent
from relaygraph.core.store import ConversationStore, Snapshot

logger = get_logger(LogComponent.WORKFLOW)

SYSTEM_PROMPT = "You are a helpful demo assistant. Keep replies short and actionable."


class ConversationState(RunState):
    thread_id: str = ""
    message: str = ""
    response: str = ""


CONVERSATION_SHAPE = GraphShape(
    name="conversation",
    nodes=[NodeSpec(name="reply", writes=["response"], description="Assistant turn")],
    edges=[
        EdgeSpec(source=START, target="reply"),
        EdgeSpec(source="reply", target=END),
    ],
)


def build_conversation_graph(
    client: ModelClient,
    store: ConversationStore,
    max_steps: Optional[int] = None
) -> CompiledGraph:
    async def reply(state: ConversationState) -> Dict[str, Any]:
        latest = store.latest(state.thread_id)
        history = list(latest.state) if latest else []
        logger.debug(f"Thread '{state.thread_id}': replying with {len(history)} prior messages")
        response = await client.complete(SYSTEM_PROMPT, [*history, ChatMessage.user(state.message)])
        return {"response": response.content}

    return CONVERSATION_SHAPE.build(ConversationState, {"reply": reply}).compile(max_steps=max_steps)


def conversation_graph_from_settings(
    settings: RelaySettings,
    store: ConversationStore,
    models: ModelFactory = default_model_factory
) -> CompiledGraph:
    return build_conversation_graph(models(settings.conversation), store, max_steps=settings.max_steps)


async def take_turn(
    plan: CompiledGraph,
    store: ConversationStore,
    thread_id: str,
    message: str
) -> Snapshot:
    """Run one turn and snapshot it.

    Returns:
        The snapshot holding the updated history; its last message is the reply
    """
    state = await plan.ainvoke({"thread_id": thread_id, "message": message})
    return await store.append(
        thread_id,
        [ChatMessage.user(message), ChatMessage.assistant(state.response)],
    )
