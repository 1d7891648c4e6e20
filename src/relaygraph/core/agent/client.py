"""Model-call collaborators.

Nodes never talk to a provider SDK directly. They hold a `ModelClient`, which
turns (system instructions, conversation so far, optional tools) into a reply.
`MirascopeModelClient` is the production implementation; tests substitute a
scripted client.

Message Flow:
    1. The system prompt and the `ChatMessage` history are converted to OpenAI
       message params
    2. A mirascope call is built for the configured model and tools
    3. The response text and any requested tool calls come back as a
       `ModelReply`; tool execution is left to the graph (see `ToolExecutor`)
"""

import abc
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from mirascope.core import BaseTool, openai
from pydantic import BaseModel, Field
from tenacity import retry, stop_after_attempt, wait_exponential

from relaygraph.core.agent.messages import ChatMessage, ToolCall
from relaygraph.core.config import ModelSettings
from relaygraph.core.errors import StructuredOutputUnsupported
from relaygraph.core.logging import get_logger, log_verbose, LogComponent

logger = get_logger(LogComponent.AGENT)

M = TypeVar("M", bound=BaseModel)


class ModelReply(BaseModel):
    """Text generated by the model plus any tool calls it requested."""
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)


class ModelClient(abc.ABC):
    """Asynchronous text-in, text-out model interface."""

    model: str = "unknown"

    @abc.abstractmethod
    async def complete(
        self,
        system: str,
        messages: Sequence[ChatMessage],
        tools: Optional[Sequence[Type[BaseTool]]] = None
    ) -> ModelReply:
        """Generate the next assistant turn.

        Raises:
            Exception: Whatever the provider raises; callers decide whether the
                failure is soft or hard
        """

    async def extract(
        self,
        system: str,
        messages: Sequence[ChatMessage],
        response_model: Type[M]
    ) -> M:
        """Generate output constrained to `response_model`.

        Raises:
            StructuredOutputUnsupported: When the client cannot constrain output
        """
        raise StructuredOutputUnsupported(
            f"{type(self).__name__} does not support structured output"
        )

    async def ask(self, system: str, prompt: str) -> str:
        """Single user turn; returns only the text."""
        reply = await self.complete(system, [ChatMessage.user(prompt)])
        return reply.content


def _to_params(system: str, messages: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
    params = [{"role": "system", "content": system}] if system else []
    params.extend(message.to_openai() for message in messages)
    return params


class MirascopeModelClient(ModelClient):
    """ModelClient backed by mirascope's OpenAI provider.

    Attributes:
        model: OpenAI model name
        temperature: Sampling temperature; None leaves the provider default
            (reasoning models reject an explicit temperature)
    """

    def __init__(self, model: str, temperature: Optional[float] = None) -> None:
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: ModelSettings) -> "MirascopeModelClient":
        return cls(model=settings.model, temperature=settings.temperature)

    def _call_params(self) -> Dict[str, Any]:
        if self.temperature is None:
            return {}
        return {"temperature": self.temperature}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def complete(
        self,
        system: str,
        messages: Sequence[ChatMessage],
        tools: Optional[Sequence[Type[BaseTool]]] = None
    ) -> ModelReply:
        params = _to_params(system, messages)

        async def prompt() -> openai.OpenAIDynamicConfig:
            return {"messages": params}

        call = openai.call(
            self.model,
            tools=list(tools) if tools else None,
            call_params=self._call_params(),
        )(prompt)

        log_verbose(logger, f"[{self.model}] calling with {len(params)} messages")
        response = await call()

        tool_calls = []
        for tool in response.tools or []:
            raw = getattr(tool, "tool_call", None)
            tool_calls.append(ToolCall(
                id=getattr(raw, "id", None) or f"call_{uuid.uuid4().hex[:12]}",
                name=tool._name(),
                args=tool.args,
            ))
            logger.tool(f"[{self.model}] requested tool '{tool._name()}' with args {tool.args}")

        content = response.content or ""
        log_verbose(logger, f"[{self.model}] response: {content}")
        return ModelReply(content=content, tool_calls=tool_calls)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def extract(
        self,
        system: str,
        messages: Sequence[ChatMessage],
        response_model: Type[M]
    ) -> M:
        params = _to_params(system, messages)

        async def prompt() -> openai.OpenAIDynamicConfig:
            return {"messages": params}

        call = openai.call(
            self.model,
            response_model=response_model,
            call_params=self._call_params(),
        )(prompt)

        result = await call()
        log_verbose(logger, f"[{self.model}] structured response: {result}")
        return result


ModelFactory = Callable[[ModelSettings], ModelClient]


def default_model_factory(settings: ModelSettings) -> ModelClient:
    """Production factory: one mirascope client per model role."""
    return MirascopeModelClient.from_settings(settings)
