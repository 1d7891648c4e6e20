"""Provider-neutral chat messages passed through workflow state."""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ChatMessage(BaseModel):
    """
    One message of a conversation.

    Attributes:
        role: system, user, assistant or tool
        content: Message text
        name: Optional author tag; agents use it to mark what a message carries
        tool_calls: Pending tool calls on an assistant message
        tool_call_id: The call a tool message answers
    """
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    name: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None

    @classmethod
    def user(cls, content: str, name: Optional[str] = None) -> "ChatMessage":
        return cls(role="user", content=content, name=name)

    @classmethod
    def assistant(
        cls,
        content: str,
        name: Optional[str] = None,
        tool_calls: Optional[List[ToolCall]] = None
    ) -> "ChatMessage":
        return cls(role="assistant", content=content, name=name, tool_calls=tool_calls or [])

    @classmethod
    def tool(cls, content: str, call: ToolCall) -> "ChatMessage":
        return cls(role="tool", content=content, name=call.name, tool_call_id=call.id)

    def to_openai(self) -> Dict[str, Any]:
        """Convert to an OpenAI chat-completions message param."""
        if self.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id or "",
                "content": self.content,
            }

        param: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name:
            param["name"] = self.name
        if self.role == "assistant" and self.tool_calls:
            param["content"] = self.content or None
            param["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.args)},
                }
                for call in self.tool_calls
            ]
        return param

    def summary(self) -> Dict[str, Any]:
        """Role, content and name, as returned over HTTP."""
        return {"role": self.role, "content": self.content, "name": self.name}


def last_message(messages: List[ChatMessage]) -> Optional[ChatMessage]:
    return messages[-1] if messages else None


def last_named(messages: List[ChatMessage], name: str) -> Optional[ChatMessage]:
    """Most recent message carrying `name`."""
    for message in reversed(messages):
        if message.name == name:
            return message
    return None
