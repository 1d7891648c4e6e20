"""Tests for messages, model clients and tool execution."""

import json
from typing import List

import pytest
from mirascope.core import BaseTool
from pydantic import Field

from relaygraph.core.agent import (
    ChatMessage,
    MirascopeModelClient,
    ModelReply,
    ToolCall,
    ToolExecutor,
    default_model_factory,
    last_named,
)
from relaygraph.core.config import ModelSettings
from relaygraph.core.errors import StructuredOutputUnsupported
from relaygraph.core.graph import RunState
from tests.conftest import FakeModelClient


class EchoTool(BaseTool):
    """Echo the given text."""
    text: str = Field(..., description="Text to echo")

    def call(self) -> str:
        return f"echo: {self.text}"


class AsyncUpperTool(BaseTool):
    """Upper-case the given text."""
    text: str

    async def call(self) -> str:
        return self.text.upper()


class BrokenTool(BaseTool):
    """Always fails."""

    def call(self) -> str:
        raise RuntimeError("disk full")


class ChatState(RunState):
    messages: List[ChatMessage] = []


class TestChatMessage:
    """Provider-neutral messages."""

    def test_user_param(self):
        assert ChatMessage.user("hi").to_openai() == {"role": "user", "content": "hi"}

    def test_named_assistant_with_tool_calls(self):
        call = ToolCall(id="call_1", name="EchoTool", args={"text": "x"})
        param = ChatMessage.assistant("", name="scraper", tool_calls=[call]).to_openai()
        assert param["name"] == "scraper"
        assert param["content"] is None
        assert param["tool_calls"][0]["id"] == "call_1"
        assert param["tool_calls"][0]["type"] == "function"
        assert json.loads(param["tool_calls"][0]["function"]["arguments"]) == {"text": "x"}

    def test_tool_message(self):
        call = ToolCall(id="call_1", name="EchoTool")
        message = ChatMessage.tool("done", call)
        assert message.name == "EchoTool"
        assert message.to_openai() == {"role": "tool", "tool_call_id": "call_1", "content": "done"}

    def test_last_named(self):
        messages = [
            ChatMessage.assistant("old", name="scraper"),
            ChatMessage.user("x"),
            ChatMessage.assistant("new", name="scraper"),
        ]
        assert last_named(messages, "scraper").content == "new"
        assert last_named(messages, "missing") is None

    def test_summary(self):
        assert ChatMessage.assistant("hi", name="router").summary() == {
            "role": "assistant", "content": "hi", "name": "router"
        }


class TestModelClient:
    """Client contract."""

    @pytest.mark.asyncio
    async def test_ask_sends_single_user_turn(self):
        client = FakeModelClient(["pong"])
        assert await client.ask("be brief", "ping") == "pong"
        call = client.calls[0]
        assert call["system"] == "be brief"
        assert [m.content for m in call["messages"]] == ["ping"]

    @pytest.mark.asyncio
    async def test_extract_unsupported_by_default(self):
        with pytest.raises(StructuredOutputUnsupported):
            await FakeModelClient().extract("sys", [], ModelReply)

    def test_factory_builds_mirascope_client(self):
        client = default_model_factory(ModelSettings(model="o3-mini"))
        assert isinstance(client, MirascopeModelClient)
        assert client.model == "o3-mini"
        assert client._call_params() == {}

    def test_temperature_passed_when_set(self):
        client = MirascopeModelClient.from_settings(ModelSettings(model="gpt-4", temperature=0.8))
        assert client._call_params() == {"temperature": 0.8}


class TestToolExecutor:
    """Running pending tool calls."""

    @pytest.mark.asyncio
    async def test_runs_calls_in_order(self):
        executor = ToolExecutor([EchoTool, AsyncUpperTool])
        calls = [
            ToolCall(id="1", name="EchoTool", args={"text": "a"}),
            ToolCall(id="2", name="AsyncUpperTool", args={"text": "b"}),
        ]
        state = ChatState(messages=[ChatMessage.assistant("", tool_calls=calls)])

        update = await executor(state)
        tool_messages = update["messages"][1:]
        assert [(m.role, m.tool_call_id, m.content) for m in tool_messages] == [
            ("tool", "1", "echo: a"),
            ("tool", "2", "B"),
        ]
        assert len(state.messages) == 1

    @pytest.mark.asyncio
    async def test_errors_become_tool_messages(self):
        executor = ToolExecutor([BrokenTool])
        calls = [
            ToolCall(id="1", name="BrokenTool"),
            ToolCall(id="2", name="Missing"),
        ]
        update = await executor(ChatState(messages=[ChatMessage.assistant("", tool_calls=calls)]))
        contents = [m.content for m in update["messages"][1:]]
        assert contents == ["Error: disk full", "Error: unknown tool 'Missing'"]

    @pytest.mark.asyncio
    async def test_bad_arguments_become_tool_messages(self):
        executor = ToolExecutor([EchoTool])
        calls = [ToolCall(id="1", name="EchoTool", args={})]
        update = await executor(ChatState(messages=[ChatMessage.assistant("", tool_calls=calls)]))
        assert update["messages"][-1].content.startswith("Error:")

    @pytest.mark.asyncio
    async def test_nothing_pending(self):
        executor = ToolExecutor([EchoTool])
        assert await executor(ChatState(messages=[ChatMessage.user("hi")])) == {}
        assert await executor(ChatState()) == {}
