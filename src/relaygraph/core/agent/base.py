"""
Agents and tool execution for graph workflows.

An agent is a graph participant with two capabilities:
 - `step(state)`: do one unit of work and return a partial state update
 - `continuation_route(state)`: name where the run should go next

Each role in a workflow is its own `Agent` subclass, so routing behaviour is a
typed capability rather than something read off loosely-shaped objects.

Tool use is split across two nodes: the agent's step asks the model and leaves
any requested tool calls on its assistant message, then a `ToolExecutor` node
runs those calls and appends one tool message per call before looping back.
"""

import abc
import inspect
from typing import Any, Dict, List, Optional, Sequence, Type

from mirascope.core import BaseTool

from relaygraph.core.agent.client import ModelClient
from relaygraph.core.agent.messages import ChatMessage, ToolCall, last_message
from relaygraph.core.graph.state import RunState
from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.AGENT)
tool_logger = get_logger(LogComponent.TOOLS)


class Agent(abc.ABC):
    """Base class for model-backed graph participants.

    Attributes:
        name: Agent name, used as the node name by convention
        client: Model-call collaborator
        system_prompt: Instructions sent ahead of the conversation
        tools: Tool classes the model may call
    """

    name: str = "agent"
    system_prompt: str = ""

    def __init__(
        self,
        client: ModelClient,
        tools: Optional[Sequence[Type[BaseTool]]] = None,
        system_prompt: Optional[str] = None
    ) -> None:
        self.client = client
        self.tools = list(tools or [])
        if system_prompt is not None:
            self.system_prompt = system_prompt

    @abc.abstractmethod
    async def step(self, state: RunState) -> Dict[str, Any]:
        """Do one unit of work and return a partial state update."""

    @abc.abstractmethod
    def continuation_route(self, state: RunState) -> str:
        """Label for the next destination; must be pure with respect to state."""

    async def __call__(self, state: RunState) -> Dict[str, Any]:
        return await self.step(state)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.client.model!r})"


class ToolExecutor:
    """Node running the tool calls pending on the last assistant message.

    Calls run sequentially in the order the model issued them. A tool that is
    unknown or raises produces an error-text tool message so the model can
    react to it on its next turn.
    """

    def __init__(
        self,
        tools: Sequence[Type[BaseTool]],
        messages_field: str = "messages"
    ) -> None:
        self.tools = {tool._name(): tool for tool in tools}
        self.messages_field = messages_field

    async def run_call(self, call: ToolCall) -> str:
        """Execute one tool call and return its output as text."""
        tool_cls = self.tools.get(call.name)
        if tool_cls is None:
            tool_logger.warning(f"Model requested unknown tool '{call.name}'")
            return f"Error: unknown tool '{call.name}'"

        tool_logger.tool(f"[Calling Tool '{call.name}' with args {call.args}]")
        try:
            tool = tool_cls(**call.args)
            result = tool.call()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            tool_logger.error(f"Tool '{call.name}' failed: {e}")
            return f"Error: {e}"

        tool_logger.debug(f"Tool '{call.name}' result: {result}")
        return str(result)

    async def __call__(self, state: RunState) -> Dict[str, List[ChatMessage]]:
        messages: List[ChatMessage] = list(getattr(state, self.messages_field))
        last = last_message(messages)
        if last is None or not last.tool_calls:
            return {}

        for call in last.tool_calls:
            output = await self.run_call(call)
            messages.append(ChatMessage.tool(output, call))
        return {self.messages_field: messages}
